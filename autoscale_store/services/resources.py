"""Cached queries against virtual machine scale set resources.

Each query performs a single compute or network management API call and runs
it through the request cache. The clients are injected and only need the
shape of the async Azure management clients used here:

- ``compute.virtual_machine_scale_set_vms.list(resource_group, vmss)``
- ``compute.virtual_machine_scale_set_vms.get(resource_group, vmss, instance_id, expand=...)``
- ``network.network_interfaces.list_virtual_machine_scale_set_vm_network_interfaces(
  resource_group, vmss, instance_id)``
"""

import math
from typing import Any, Dict, List, Optional

from autoscale_store.constants import (
    API_DESCRIBE_INSTANCE,
    API_LIST_INSTANCES,
    API_LIST_NETWORK_INTERFACES,
    DEFAULT_API_CACHE_TTL,
    INSTANCE_VIEW_EXPAND,
)
from autoscale_store.core.logging import get_logger
from autoscale_store.models.cache import ApiCache, ApiCacheOption, ApiCacheRequest
from autoscale_store.services.request_cache import RequestCache

logger = get_logger(__name__)


def to_payload(resource: Any) -> Any:
    """Convert an SDK model into plain JSON-ready data."""
    if hasattr(resource, "as_dict"):
        return resource.as_dict()
    return resource


async def collect(pager: Any) -> Optional[List[Any]]:
    """Drain an async pager into a list of payloads."""
    if pager is None:
        return None
    return [to_payload(item) async for item in pager]


def is_instance_id(value: str) -> bool:
    """True when value is numeric, i.e. a positional scale set instance id."""
    try:
        return math.isfinite(float(value))
    except (TypeError, ValueError):
        return False


class ScaleSetResources:
    """Scale set instance and network interface queries with API caching."""

    def __init__(self, request_cache: RequestCache, compute_client: Any,
                 network_client: Any, resource_group: str,
                 ttl: int = DEFAULT_API_CACHE_TTL):
        self.request_cache = request_cache
        self.compute = compute_client
        self.network = network_client
        self.resource_group = resource_group
        self.ttl = ttl

    async def list_instances(
        self,
        scaling_group_name: str,
        cache_option: ApiCacheOption = ApiCacheOption.READ_CACHE_FIRST,
    ) -> ApiCache[List[Dict[str, Any]]]:
        """List the virtual machines in a scaling group (vmss)."""
        req = ApiCacheRequest(
            api=API_LIST_INSTANCES,
            parameters=[scaling_group_name],
            ttl=self.ttl,
        )

        async def request_processor() -> Optional[List[Dict[str, Any]]]:
            pager = self.compute.virtual_machine_scale_set_vms.list(
                self.resource_group, scaling_group_name
            )
            return await collect(pager)

        return await self.request_cache.request_with_caching(req, cache_option, request_processor)

    async def describe_instance(
        self,
        scaling_group_name: str,
        id: str,
        cache_option: ApiCacheOption = ApiCacheOption.READ_CACHE_FIRST,
    ) -> ApiCache[Dict[str, Any]]:
        """Describe a virtual machine in a scaling group.

        Args:
            scaling_group_name: The scaling group containing the vm.
            id: Either the numeric instance id or the vm id of the vm. A vm
                id is resolved against the (cached) instance list.
            cache_option: Caching behaviour for the request.
        """
        if is_instance_id(id):
            req = ApiCacheRequest(
                api=API_DESCRIBE_INSTANCE,
                parameters=[scaling_group_name, id],
                ttl=self.ttl,
            )

            async def request_processor() -> Optional[Dict[str, Any]]:
                vm = await self.compute.virtual_machine_scale_set_vms.get(
                    self.resource_group, scaling_group_name, id, expand=INSTANCE_VIEW_EXPAND
                )
                return to_payload(vm) if vm is not None else None

            return await self.request_cache.request_with_caching(req, cache_option, request_processor)

        list_result = await self.list_instances(scaling_group_name, cache_option)
        vm = next(
            (v for v in list_result.result or [] if v.get("vm_id") and v.get("vm_id") == id),
            None
        )
        if vm is None:
            logger.debug("Instance not found by vm id", scaling_group=scaling_group_name, vm_id=id)
        return ApiCache(
            result=vm,
            hit_cache=list_result.hit_cache,
            cache_time=list_result.cache_time,
            ttl=list_result.ttl,
        )

    async def list_network_interfaces(
        self,
        scaling_group_name: str,
        id: int,
        cache_option: ApiCacheOption = ApiCacheOption.READ_CACHE_FIRST,
        ttl: Optional[int] = None,
    ) -> ApiCache[List[Dict[str, Any]]]:
        """List the network interfaces of a vm in a scaling group."""
        req = ApiCacheRequest(
            api=API_LIST_NETWORK_INTERFACES,
            parameters=[scaling_group_name, str(id)],
            ttl=ttl or self.ttl,
        )

        async def request_processor() -> Optional[List[Dict[str, Any]]]:
            pager = self.network.network_interfaces.list_virtual_machine_scale_set_vm_network_interfaces(
                self.resource_group, scaling_group_name, str(id)
            )
            return await collect(pager)

        return await self.request_cache.request_with_caching(req, cache_option, request_processor)
