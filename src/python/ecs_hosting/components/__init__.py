"""Pulumi components that make up a deployment."""

from .app_service import AppService
from .cluster import EcsCluster
from .load_balancer import LoadBalancer
from .network import Network

__all__ = ["AppService", "EcsCluster", "LoadBalancer", "Network"]
