from __future__ import annotations

"""Attest command-line interface entrypoint."""

import argparse
import json
import logging
import sys

import yaml

from attest.adapters.assessment_evidence_collector import AssessmentEvidenceCollector
from attest.adapters.evidence_store_fs import FileSystemEvidenceStore
from attest.adapters.json_assessment_provider import JsonAssessmentProvider
from attest.adapters.simulated_remediation import SimulatedRemediationProvider
from attest.core.config import Settings
from attest.core.errors import InvalidRequestError
from attest.core.orchestrator import ComplianceOrchestrator, OperationContext
from attest.core.pdf_report import generate_plan_pdf
from attest.core.requests import (
    EVIDENCE_TYPES,
    AssessmentRequest,
    AuditLogRequest,
    ControlFamilyRequest,
    EvidenceRequest,
    HistoryRequest,
    PlanRequest,
    RemediationRequest,
)
from attest.core.results import OperationResult, to_jsonable
from attest.core.trend import analyze_trend


CLI_CONVERSATION_ID = "cli"


def _parse_bool(value: str | None) -> bool:
    """Parse optional boolean flags that allow an implicit True value."""
    if value is None:
        return True
    return value.lower() in {"1", "true", "yes"}


def _load_settings(args: argparse.Namespace) -> Settings:
    if args.config:
        return Settings.from_file(args.config)
    return Settings().with_env()


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _build_orchestrator(args: argparse.Namespace, settings: Settings) -> ComplianceOrchestrator:
    provider = JsonAssessmentProvider(base_dir=args.assessments)
    return ComplianceOrchestrator(
        assessment_provider=provider,
        remediation_provider=SimulatedRemediationProvider(),
        evidence_collectors=[AssessmentEvidenceCollector(provider)],
        evidence_store=FileSystemEvidenceStore(base_dir=args.evidence_dir or settings.evidence_dir),
        settings=settings,
    )


def _scope_payload(args: argparse.Namespace) -> dict:
    payload = {"subscription_id": args.subscription}
    if args.resource_group:
        payload["resource_group"] = args.resource_group
    return payload


def _emit(result: OperationResult, output_format: str) -> int:
    if output_format == "markdown":
        display = result.data.get("display")
        print(display if display else result.message)
        for step in result.next_steps:
            print(f"- Next: {step}")
    else:
        print(json.dumps(result.to_dict(), indent=2, sort_keys=True))
    return 0 if result.success else 1


def _run(args: argparse.Namespace, build_request, invoke) -> tuple[int, OperationResult | None]:
    """Validate the request, run the operation and print its result.

    Notes:
        Invalid settings and invalid requests exit with 2, the same code
        argparse uses for bad arguments; failed operations exit with 1.
    """
    try:
        settings = _load_settings(args)
    except (FileNotFoundError, ValueError, json.JSONDecodeError, yaml.YAMLError) as exc:
        print(f"Invalid settings: {exc}", file=sys.stderr)
        return 2, None
    _configure_logging(settings.log_level)
    try:
        request = build_request()
    except InvalidRequestError as exc:
        print(f"Invalid request: {exc.message}", file=sys.stderr)
        return 2, None
    orchestrator = _build_orchestrator(args, settings)
    context = OperationContext(conversation_id=CLI_CONVERSATION_ID)
    result = invoke(orchestrator, context, request)
    return _emit(result, args.format), result


def assess_command(args: argparse.Namespace) -> int:
    payload = _scope_payload(args)
    payload["skip_cache"] = args.skip_cache
    code, _ = _run(args, lambda: AssessmentRequest.from_dict(payload), lambda orch, ctx, req: orch.run_assessment(ctx, req))
    return code


def plan_command(args: argparse.Namespace) -> int:
    payload = _scope_payload(args)
    if args.severity:
        payload["severity_filter"] = args.severity
    if args.family:
        payload["control_family"] = args.family
    code, result = _run(args, lambda: PlanRequest.from_dict(payload), lambda orch, ctx, req: orch.plan(ctx, req))
    if args.pdf and result is not None and result.success:
        path = generate_plan_pdf(result.data["plan"], args.pdf)
        print(f"PDF report written to {path}", file=sys.stderr)
    return code


def remediate_command(args: argparse.Namespace) -> int:
    payload = _scope_payload(args)
    payload["severity_filter"] = args.severity
    if args.dry_run is not None:
        payload["dry_run"] = args.dry_run
    payload["fail_fast"] = args.fail_fast
    if args.family:
        payload["control_family"] = args.family
    if args.max_findings is not None:
        payload["max_findings"] = args.max_findings
    if args.max_concurrent is not None:
        payload["max_concurrent"] = args.max_concurrent
    code, _ = _run(args, lambda: RemediationRequest.from_dict(payload), lambda orch, ctx, req: orch.remediate(ctx, req))
    return code


def history_command(args: argparse.Namespace) -> int:
    payload = _scope_payload(args)
    payload["days"] = args.days
    code, _ = _run(args, lambda: HistoryRequest.from_dict(payload), lambda orch, ctx, req: orch.compliance_history(ctx, req))
    return code


def evidence_command(args: argparse.Namespace) -> int:
    payload = _scope_payload(args)
    payload["control_family"] = args.family
    if args.types:
        payload["evidence_types"] = [item.strip().lower() for item in args.types.split(",") if item.strip()]
    code, _ = _run(
        args,
        lambda: EvidenceRequest.from_dict(payload),
        lambda orch, ctx, req: orch.collect_evidence(ctx, req),
    )
    return code


def audit_command(args: argparse.Namespace) -> int:
    payload = _scope_payload(args)
    payload["days"] = args.days
    code, _ = _run(
        args,
        lambda: AuditLogRequest.from_dict(payload),
        lambda orch, ctx, req: orch.assessment_audit_log(ctx, req),
    )
    return code


def family_command(args: argparse.Namespace) -> int:
    payload = _scope_payload(args)
    payload["control_family"] = args.family
    if args.control:
        payload["control_id"] = args.control
    if args.severity:
        payload["severity"] = args.severity
    code, _ = _run(
        args,
        lambda: ControlFamilyRequest.from_dict(payload),
        lambda orch, ctx, req: orch.control_family_details(ctx, req),
    )
    return code


def trend_command(args: argparse.Namespace) -> int:
    result = analyze_trend(args.scores)
    print(json.dumps(to_jsonable(result), indent=2, sort_keys=True))
    return 0


def _add_common(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--config", default=None, help="Path to settings.yaml")
    parser.add_argument("--assessments", default="assessments", help="Directory of assessment exports")
    parser.add_argument("--subscription", required=True, help="Subscription id to operate on")
    parser.add_argument("--resource-group", default=None, help="Optional resource group")
    parser.add_argument("--evidence-dir", default=None, help="Override the evidence output directory")
    parser.add_argument(
        "--format",
        choices=["json", "markdown"],
        default="json",
        help="Output format for the operation result",
    )


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint and command registration."""
    parser = argparse.ArgumentParser(prog="attest")
    subparsers = parser.add_subparsers(dest="command", required=True)

    assess_parser = subparsers.add_parser("assess", help="Load or run a compliance assessment")
    _add_common(assess_parser)
    assess_parser.add_argument("--skip-cache", action="store_true", help="Ignore a cached assessment")
    assess_parser.set_defaults(func=assess_command)

    plan_parser = subparsers.add_parser("plan", help="Generate a remediation plan")
    _add_common(plan_parser)
    plan_parser.add_argument("--severity", default=None, choices=["critical", "high", "medium", "low", "all"])
    plan_parser.add_argument("--family", default=None, help="Control family prefix, for example AC")
    plan_parser.add_argument("--pdf", default=None, help="Also write the plan as a PDF to this path")
    plan_parser.set_defaults(func=plan_command)

    remediate_parser = subparsers.add_parser("remediate", help="Remediate auto-remediable findings")
    _add_common(remediate_parser)
    remediate_parser.add_argument("--severity", default="high", choices=["critical", "high", "medium", "low", "all"])
    remediate_parser.add_argument("--family", default=None, help="Control family prefix, for example AC")
    remediate_parser.add_argument("--max-findings", type=int, default=None, help="Cap on findings in the batch")
    remediate_parser.add_argument("--max-concurrent", type=int, default=None, help="Parallel remediations")
    remediate_parser.add_argument(
        "--dry-run",
        nargs="?",
        const=True,
        default=None,
        type=_parse_bool,
        help="Preview changes without applying them (true/false); defaults to the configured setting",
    )
    remediate_parser.add_argument("--fail-fast", action="store_true", help="Stop dispatching after the first failure")
    remediate_parser.set_defaults(func=remediate_command)

    history_parser = subparsers.add_parser("history", help="Show compliance score history and trend")
    _add_common(history_parser)
    history_parser.add_argument("--days", type=int, default=30, help="Days of history (1-365)")
    history_parser.set_defaults(func=history_command)

    evidence_parser = subparsers.add_parser("evidence", help="Collect evidence for a control family")
    _add_common(evidence_parser)
    evidence_parser.add_argument("--family", required=True, help="Control family code, for example AC")
    evidence_parser.add_argument(
        "--types",
        default=None,
        help=f"Comma-separated evidence types ({', '.join(EVIDENCE_TYPES)})",
    )
    evidence_parser.set_defaults(func=evidence_command)

    audit_parser = subparsers.add_parser("audit", help="Summarize who ran assessments and how they went")
    _add_common(audit_parser)
    audit_parser.add_argument("--days", type=int, default=7, help="Days of audit log (1-90)")
    audit_parser.set_defaults(func=audit_command)

    family_parser = subparsers.add_parser("family", help="Show unresolved findings for one control family")
    _add_common(family_parser)
    family_parser.add_argument("--family", required=True, help="Control family code, for example AC")
    family_parser.add_argument("--control", default=None, help="Only this control id, for example AC-2")
    family_parser.add_argument(
        "--severity",
        default=None,
        choices=["critical", "high", "medium", "low", "informational"],
        help="Only findings of exactly this severity",
    )
    family_parser.set_defaults(func=family_command)

    trend_parser = subparsers.add_parser("trend", help="Classify a score series")
    trend_parser.add_argument("scores", nargs="+", type=float, help="Scores in chronological order")
    trend_parser.set_defaults(func=trend_command)

    args = parser.parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    raise SystemExit(main())
