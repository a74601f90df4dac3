"""High-level generator orchestration."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .codegen_ast import render_client_module, render_messages_module, render_package_init_module
from .descriptors import MethodDescriptor, ServiceDescriptor
from .errors import GenerationError, SchemaLookupError
from .loader import SchemaLoadError, build_schema, load_schema_document, load_service_config
from .message_models import build_messages_module, verification_items
from .mixins import STANDARD_SURFACE_FILES, MixinSet, collect_mixins, expand_methods
from .model_types import (
    ClientMethodEntry,
    ClientVerificationItem,
    GenerationResult,
    MethodError,
    MethodOutput,
    MethodPlan,
    ServiceManifest,
)
from .naming import client_class_name, client_module_name, package_name_for, snake_case
from .schema import Schema
from .shapes import plan_method
from .strategies import SynthesisContext, synthesize_method
from .verify import VerificationReport, verify_package
from .writer import WriteError, create_output_layout, format_generated_tree, write_module

logger = logging.getLogger(__name__)

DEFAULT_PACKAGE_NAME = "generated_client"
MESSAGES_MODULE = "messages"


@dataclass(frozen=True)
class GenerationRun:
    """Generation result with optional verification report."""

    result: GenerationResult
    verification_report: Optional[VerificationReport]


@dataclass(frozen=True)
class _ServicePlans:
    service: ServiceDescriptor
    plans: tuple[MethodPlan, ...]


def run_generation(
    *,
    input_path: Path,
    output_dir: Path,
    verify: bool,
    service_config_path: Optional[Path] = None,
    package_name: Optional[str] = None,
) -> GenerationRun:
    """Generate a REST client package from an API schema document.

    Methods that cannot be generated are reported in
    ``GenerationResult.errors`` and left out of their client; every other
    method is still generated.

    Args:
        input_path (Path): Path to the input schema YAML document.
        output_dir (Path): Directory where the generated package is written.
        verify (bool): Whether to import and check the generated package.
        service_config_path (Optional[Path]): Service config enabling
            standard surface methods.
        package_name (Optional[str]): Generated package name; derived from the
            first file's package when omitted.

    Returns:
        GenerationRun: Generation metadata and optional verification report.
    """
    document = load_schema_document(input_path)
    schema = build_schema(document, supplemental_files=tuple(STANDARD_SURFACE_FILES.values()))
    service_config = load_service_config(service_config_path) if service_config_path else None
    mixins = collect_mixins(schema, service_config)
    if package_name is None:
        first_package = document.files[0].package if document.files else ""
        package_name = package_name_for(first_package) if first_package else DEFAULT_PACKAGE_NAME

    errors: list[MethodError] = []
    warnings: list[str] = []
    service_plans = _plan_services(schema=schema, mixins=mixins, errors=errors, warnings=warnings)

    all_methods = [plan.method for entry in service_plans for plan in entry.plans]
    messages_module, type_names = build_messages_module(schema, all_methods)
    context = SynthesisContext(schema=schema, type_names=type_names)
    client_names = _assign_client_names([entry.service for entry in service_plans])

    package_dir = create_output_layout(output_dir, package_name=package_name)
    write_module(
        package_dir=package_dir,
        module_name=MESSAGES_MODULE,
        source=render_messages_module(messages_module),
    )

    outputs_by_service = {
        entry.service.full_name: _synthesize_service(entry=entry, context=context, errors=errors)
        for entry in service_plans
    }
    _drop_unpollable_operations(
        service_plans=service_plans, outputs_by_service=outputs_by_service, errors=errors
    )

    manifests: list[ServiceManifest] = []
    client_items: list[ClientVerificationItem] = []
    for entry in service_plans:
        outputs = outputs_by_service[entry.service.full_name]
        module_name, class_name = client_names[entry.service.full_name]
        manifest = _service_manifest(entry=entry, outputs=outputs, client_names=client_names)
        write_module(
            package_dir=package_dir,
            module_name=module_name,
            source=render_client_module(
                service=entry.service,
                manifest=manifest,
                methods=outputs,
                client_names=client_names,
            ),
        )
        manifests.append(manifest)
        client_items.append(
            ClientVerificationItem(
                service_name=entry.service.full_name,
                class_name=class_name,
                method_names=tuple(output.name for output in outputs),
                generated_module_path=str(Path(package_name) / f"{module_name}.py"),
            )
        )
    write_module(
        package_dir=package_dir,
        module_name="__init__",
        source=render_package_init_module(package_name=package_name, manifests=manifests),
    )

    format_generated_tree(package_dir=package_dir)
    logger.info(
        "Generated %d client(s) with %d method error(s) into %s",
        len(manifests),
        len(errors),
        package_dir,
    )

    model_items = list(
        verification_items(
            schema,
            messages_module,
            module_path=str(Path(package_name) / f"{MESSAGES_MODULE}.py"),
        )
    )
    result = GenerationResult(
        output_dir=str(output_dir),
        package_name=package_name,
        services=tuple(manifests),
        verification_items=tuple(model_items),
        client_verification_items=tuple(client_items),
        errors=tuple(errors),
        warnings=tuple(warnings),
    )

    if not verify:
        return GenerationRun(result=result, verification_report=None)

    report = verify_package(package_dir=package_dir, items=model_items, client_items=client_items)
    return GenerationRun(result=result, verification_report=report)


def _plan_services(
    *,
    schema: Schema,
    mixins: MixinSet,
    errors: list[MethodError],
    warnings: list[str],
) -> list[_ServicePlans]:
    service_plans: list[_ServicePlans] = []
    for service in schema.services():
        surface = expand_methods(service, mixins)
        plans: list[MethodPlan] = []
        for method in surface:
            plan = _plan_or_record(
                schema=schema,
                service=service,
                method=method,
                surface=surface,
                errors=errors,
            )
            if plan is None:
                continue
            plans.append(plan)
            warnings.extend(_plan_warnings(plan))
        service_plans.append(_ServicePlans(service=service, plans=tuple(plans)))
    return service_plans


def _plan_or_record(
    *,
    schema: Schema,
    service: ServiceDescriptor,
    method: MethodDescriptor,
    surface: Sequence[MethodDescriptor],
    errors: list[MethodError],
) -> Optional[MethodPlan]:
    try:
        return plan_method(schema, service, method, surface)
    except (GenerationError, SchemaLookupError) as exc:
        _record_error(errors, method, exc)
        return None


def _synthesize_service(
    *,
    entry: _ServicePlans,
    context: SynthesisContext,
    errors: list[MethodError],
) -> list[MethodOutput]:
    outputs: list[MethodOutput] = []
    for plan in entry.plans:
        try:
            outputs.append(synthesize_method(plan, context))
        except (GenerationError, SchemaLookupError) as exc:
            _record_error(errors, plan.method, exc)
    return outputs


def _polling_target(plan: MethodPlan) -> Optional[tuple[str, str]]:
    if plan.lro_poll_method is not None:
        return plan.service.full_name, plan.lro_poll_method.name
    if plan.operation_pairing is not None:
        pairing = plan.operation_pairing
        return pairing.service.full_name, pairing.polling_method.name
    return None


def _drop_unpollable_operations(
    *,
    service_plans: list[_ServicePlans],
    outputs_by_service: dict[str, list[MethodOutput]],
    errors: list[MethodError],
) -> None:
    """Remove operation methods whose polling method was not generated.

    Repeats until stable, since a removed method may itself be another
    method's poller.
    """
    plans = {
        (entry.service.full_name, plan.method.name): plan
        for entry in service_plans
        for plan in entry.plans
    }
    changed = True
    while changed:
        changed = False
        generated = {
            (service_name, output.rpc_name)
            for service_name, outputs in outputs_by_service.items()
            for output in outputs
        }
        for service_name, outputs in outputs_by_service.items():
            for output in list(outputs):
                plan = plans[(service_name, output.rpc_name)]
                target = _polling_target(plan)
                if target is None or target in generated:
                    continue
                outputs.remove(output)
                changed = True
                _record_error(
                    errors,
                    plan.method,
                    GenerationError(
                        f"{plan.method.full_name}: polling method {target[0]}.{target[1]} "
                        "was not generated"
                    ),
                )


def _record_error(errors: list[MethodError], method: MethodDescriptor, exc: Exception) -> None:
    message = str(exc)
    if not message.startswith(method.full_name):
        message = f"{method.full_name}: {message}"
    logger.warning("Skipping method: %s", message)
    errors.append(MethodError(method=method.full_name, message=message))


def _plan_warnings(plan: MethodPlan) -> list[str]:
    warnings: list[str] = []
    if plan.shape.is_streaming:
        warnings.append(
            f"{plan.method.full_name}: streaming is not supported by the REST transport; "
            "generated a stub that raises UnsupportedTransportError"
        )
    if plan.partition is not None:
        for path in plan.partition.shadowed:
            warnings.append(
                f"{plan.method.full_name}: query parameter {path!r} omitted, "
                "a top-level field has the same name"
            )
    return warnings


def _assign_client_names(services: list[ServiceDescriptor]) -> dict[str, tuple[str, str]]:
    names: dict[str, tuple[str, str]] = {}
    used: set[str] = set()
    for service in services:
        module_name = client_module_name(service.name)
        class_name = client_class_name(service.name)
        if module_name in used:
            qualified = f"{snake_case(service.package.replace('.', '_'))}_{service.name}"
            module_name = client_module_name(qualified)
            class_name = client_class_name(qualified)
        used.add(module_name)
        names[service.full_name] = (module_name, class_name)
    return names


def _service_manifest(
    *,
    entry: _ServicePlans,
    outputs: list[MethodOutput],
    client_names: dict[str, tuple[str, str]],
) -> ServiceManifest:
    plans_by_rpc = {plan.method.name: plan for plan in entry.plans}
    methods: list[ClientMethodEntry] = []
    for output in outputs:
        plan = plans_by_rpc[output.rpc_name]
        methods.append(
            ClientMethodEntry(
                name=output.name,
                rpc_name=output.rpc_name,
                shape=output.shape,
                verb=plan.binding.verb if plan.binding else None,
                url=plan.binding.url if plan.binding else None,
                summary=plan.method.comment,
            )
        )
    module_name, class_name = client_names[entry.service.full_name]
    return ServiceManifest(
        service_name=entry.service.full_name,
        module_name=module_name,
        class_name=class_name,
        methods=tuple(methods),
    )


__all__ = [
    "GenerationRun",
    "SchemaLoadError",
    "WriteError",
    "run_generation",
]
