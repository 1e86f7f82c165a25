"""Host containerized web apps on EC2-backed ECS behind a shared load balancer."""

__version__ = "0.1.0"
