"""Standard surface ("mixin") methods merged into every generated client.

A service config lists the standard APIs a service also serves (Operations,
Locations, IAM policy) and gives their HTTP bindings. Only methods with a
binding in the config are exposed.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass, field
from typing import Optional

from .descriptors import HttpRule, MethodDescriptor, ServiceDescriptor
from .document import FileDoc, HttpRuleDoc, ServiceConfigDoc
from .schema import Schema

logger = logging.getLogger(__name__)

OPERATIONS_API = "google.longrunning.Operations"
LOCATIONS_API = "google.cloud.location.Locations"
IAM_POLICY_API = "google.iam.v1.IAMPolicy"

STANDARD_SURFACE_FILES: dict[str, FileDoc] = {
    OPERATIONS_API: FileDoc.model_validate(
        {
            "package": "google.longrunning",
            "messages": [
                {
                    "name": "GetOperationRequest",
                    "fields": [{"name": "name", "type": "string"}],
                },
                {
                    "name": "ListOperationsRequest",
                    "fields": [
                        {"name": "name", "type": "string", "number": 4},
                        {"name": "filter", "type": "string", "number": 1},
                        {"name": "page_size", "type": "int32", "number": 2},
                        {"name": "page_token", "type": "string", "number": 3},
                    ],
                },
                {
                    "name": "ListOperationsResponse",
                    "fields": [
                        {"name": "operations", "type": "Operation", "repeated": True},
                        {"name": "next_page_token", "type": "string"},
                    ],
                },
                {
                    "name": "CancelOperationRequest",
                    "fields": [{"name": "name", "type": "string"}],
                },
                {
                    "name": "DeleteOperationRequest",
                    "fields": [{"name": "name", "type": "string"}],
                },
                {
                    "name": "WaitOperationRequest",
                    "fields": [
                        {"name": "name", "type": "string"},
                        {
                            "name": "timeout",
                            "type": "string",
                            "comment": "Maximum time to wait, as a duration string such as 3.5s.",
                        },
                    ],
                },
            ],
            "services": [
                {
                    "name": "Operations",
                    "methods": [
                        {
                            "name": "ListOperations",
                            "input": "ListOperationsRequest",
                            "output": "ListOperationsResponse",
                        },
                        {
                            "name": "GetOperation",
                            "input": "GetOperationRequest",
                            "output": "Operation",
                        },
                        {
                            "name": "DeleteOperation",
                            "input": "DeleteOperationRequest",
                            "output": ".google.protobuf.Empty",
                        },
                        {
                            "name": "CancelOperation",
                            "input": "CancelOperationRequest",
                            "output": ".google.protobuf.Empty",
                        },
                        {
                            "name": "WaitOperation",
                            "input": "WaitOperationRequest",
                            "output": "Operation",
                        },
                    ],
                }
            ],
        }
    ),
    LOCATIONS_API: FileDoc.model_validate(
        {
            "package": "google.cloud.location",
            "messages": [
                {
                    "name": "ListLocationsRequest",
                    "fields": [
                        {"name": "name", "type": "string"},
                        {"name": "filter", "type": "string"},
                        {"name": "page_size", "type": "int32"},
                        {"name": "page_token", "type": "string"},
                    ],
                },
                {
                    "name": "ListLocationsResponse",
                    "fields": [
                        {"name": "locations", "type": "Location", "repeated": True},
                        {"name": "next_page_token", "type": "string"},
                    ],
                },
                {
                    "name": "GetLocationRequest",
                    "fields": [{"name": "name", "type": "string"}],
                },
                {
                    "name": "Location",
                    "fields": [
                        {"name": "name", "type": "string"},
                        {"name": "location_id", "type": "string", "number": 4},
                        {"name": "display_name", "type": "string", "number": 5},
                        {
                            "name": "labels",
                            "map": {"key": "string", "value": "string"},
                            "number": 2,
                        },
                        {"name": "metadata", "type": ".google.protobuf.Any", "number": 3},
                    ],
                },
            ],
            "services": [
                {
                    "name": "Locations",
                    "methods": [
                        {
                            "name": "ListLocations",
                            "input": "ListLocationsRequest",
                            "output": "ListLocationsResponse",
                        },
                        {
                            "name": "GetLocation",
                            "input": "GetLocationRequest",
                            "output": "Location",
                        },
                    ],
                }
            ],
        }
    ),
    IAM_POLICY_API: FileDoc.model_validate(
        {
            "package": "google.iam.v1",
            "messages": [
                {
                    "name": "SetIamPolicyRequest",
                    "fields": [
                        {"name": "resource", "type": "string", "required": True},
                        {"name": "policy", "type": "Policy", "required": True},
                        {
                            "name": "update_mask",
                            "type": "string",
                            "comment": "Field mask, as comma-separated field paths.",
                        },
                    ],
                },
                {
                    "name": "GetIamPolicyRequest",
                    "fields": [
                        {"name": "resource", "type": "string", "required": True},
                        {"name": "options", "type": "GetPolicyOptions"},
                    ],
                },
                {
                    "name": "GetPolicyOptions",
                    "fields": [{"name": "requested_policy_version", "type": "int32"}],
                },
                {
                    "name": "TestIamPermissionsRequest",
                    "fields": [
                        {"name": "resource", "type": "string", "required": True},
                        {"name": "permissions", "type": "string", "repeated": True},
                    ],
                },
                {
                    "name": "TestIamPermissionsResponse",
                    "fields": [{"name": "permissions", "type": "string", "repeated": True}],
                },
                {
                    "name": "Policy",
                    "fields": [
                        {"name": "version", "type": "int32"},
                        {"name": "bindings", "type": "Binding", "repeated": True, "number": 4},
                        {"name": "etag", "type": "bytes", "number": 3},
                    ],
                },
                {
                    "name": "Binding",
                    "fields": [
                        {"name": "role", "type": "string"},
                        {"name": "members", "type": "string", "repeated": True},
                    ],
                },
            ],
            "services": [
                {
                    "name": "IAMPolicy",
                    "methods": [
                        {
                            "name": "SetIamPolicy",
                            "input": "SetIamPolicyRequest",
                            "output": "Policy",
                        },
                        {
                            "name": "GetIamPolicy",
                            "input": "GetIamPolicyRequest",
                            "output": "Policy",
                        },
                        {
                            "name": "TestIamPermissions",
                            "input": "TestIamPermissionsRequest",
                            "output": "TestIamPermissionsResponse",
                        },
                    ],
                }
            ],
        }
    ),
}

_IAM_METHOD_NAMES = frozenset({"SetIamPolicy", "GetIamPolicy", "TestIamPermissions"})


@dataclass(frozen=True)
class MixinSet:
    """Standard surface methods collected from a service config.

    ``methods`` maps each standard API to its methods that have an HTTP rule,
    already carrying that rule and their documentation.
    """

    methods: dict[str, tuple[MethodDescriptor, ...]] = field(default_factory=dict)
    apis: tuple[str, ...] = ()
    iam_overridden: bool = False

    def all_methods(self) -> tuple[MethodDescriptor, ...]:
        return tuple(method for methods in self.methods.values() for method in methods)


def _rule_to_http(rule: HttpRuleDoc) -> HttpRule:
    verb, url = rule.verb_and_url()
    return HttpRule(verb=verb, url=url, body=rule.body)


def collect_mixins(schema: Schema, service_config: Optional[ServiceConfigDoc]) -> MixinSet:
    """Collect the standard surface methods a service config enables.

    A standard API is considered only when the config lists it under
    ``apis``; of its methods, only those with a matching ``http.rules``
    selector are kept. Documentation comes from ``documentation.rules`` and
    defaults to ``"<Method> is a utility method from <api>."``.

    Args:
        schema (Schema): Schema built with :data:`STANDARD_SURFACE_FILES` supplied.
        service_config (Optional[ServiceConfigDoc]): Parsed service config, if one
            was given.

    Returns:
        MixinSet: Collected methods per standard API.
    """
    if service_config is None:
        return MixinSet()

    rules = {rule.selector: rule for rule in service_config.http.rules if rule.selector}
    docs = {rule.selector: rule.description for rule in service_config.documentation.rules}
    apis = tuple(api.name for api in service_config.apis)

    collected: dict[str, tuple[MethodDescriptor, ...]] = {}
    for api in apis:
        if api not in STANDARD_SURFACE_FILES:
            continue
        surface = schema.find_service(api)
        if surface is None:
            continue
        methods: list[MethodDescriptor] = []
        for method in surface.methods:
            rule = rules.get(method.full_name)
            if rule is None:
                continue
            methods.append(
                dataclasses.replace(
                    method,
                    http=_rule_to_http(rule),
                    comment=docs.get(
                        method.full_name, f"{method.name} is a utility method from {api}."
                    ),
                    mixin_api=api,
                )
            )
        if methods:
            collected[api] = tuple(methods)
            logger.debug("Collected %d standard method(s) from %s", len(methods), api)

    return MixinSet(
        methods=collected,
        apis=apis,
        iam_overridden=check_iam_policy_overrides(schema.services(), collected),
    )


def check_iam_policy_overrides(
    services: tuple[ServiceDescriptor, ...],
    collected: dict[str, tuple[MethodDescriptor, ...]],
) -> bool:
    """Whether an own service already declares an IAM policy method itself."""
    if IAM_POLICY_API not in collected:
        return False
    return any(
        method.name in _IAM_METHOD_NAMES for service in services for method in service.methods
    )


def _has_mixin(mixins: MixinSet, api: str) -> bool:
    return bool(mixins.methods.get(api)) and any(name != api for name in mixins.apis)


def has_lro_mixin(mixins: MixinSet) -> bool:
    return _has_mixin(mixins, OPERATIONS_API)


def has_location_mixin(mixins: MixinSet) -> bool:
    return _has_mixin(mixins, LOCATIONS_API)


def has_iam_policy_mixin(mixins: MixinSet) -> bool:
    return _has_mixin(mixins, IAM_POLICY_API) and not mixins.iam_overridden


def mixin_methods(mixins: MixinSet) -> tuple[MethodDescriptor, ...]:
    """Return the standard methods every client exposes: Locations, IAM, then Operations."""
    methods: list[MethodDescriptor] = []
    if has_location_mixin(mixins):
        methods.extend(mixins.methods[LOCATIONS_API])
    if has_iam_policy_mixin(mixins):
        methods.extend(mixins.methods[IAM_POLICY_API])
    if has_lro_mixin(mixins):
        methods.extend(mixins.methods[OPERATIONS_API])
    return tuple(methods)


def expand_methods(service: ServiceDescriptor, mixins: MixinSet) -> tuple[MethodDescriptor, ...]:
    """Return the service's own methods followed by the enabled standard methods."""
    own_names = {method.name for method in service.methods}
    extra = tuple(method for method in mixin_methods(mixins) if method.name not in own_names)
    return (*service.methods, *extra)
