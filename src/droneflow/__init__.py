"""DroneFlow — drone service request tracking.

Clients submit service requests, operators move them through the
pending → confirmed → in_progress → completed workflow, and every
connected dashboard sees the change live over server-sent events.
"""

__version__ = "0.1.0"
