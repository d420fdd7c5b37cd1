"""
``asc pass-type-ids``: Wallet pass type identifiers and their certificates.
"""

import argparse
import logging
from typing import Any, List, Optional

from ..exceptions import ValidationError
from ..utils import normalize_fields, split_csv, validate_limit, validate_sort
from . import shared

logger = logging.getLogger(__name__)

PASS_TYPE_ID_FIELDS = ["name", "identifier", "certificates"]
CERTIFICATE_FIELDS = [
    "name",
    "certificateType",
    "displayName",
    "serialNumber",
    "platform",
    "expirationDate",
    "certificateContent",
    "activated",
    "passTypeId",
]
PASS_TYPE_ID_INCLUDES = ["certificates"]
PASS_TYPE_ID_SORTS = ("name", "-name", "identifier", "-identifier", "id", "-id")
MAX_CERTIFICATES_LIMIT = 50


def normalize_include(value: Optional[str]) -> List[str]:
    return normalize_fields(value, PASS_TYPE_ID_INCLUDES, "--include")


def certificates_limit(value: int) -> Optional[int]:
    if not value:
        return None
    if value < 1 or value > MAX_CERTIFICATES_LIMIT:
        raise ValidationError(
            f"--certificates-limit must be between 1 and {MAX_CERTIFICATES_LIMIT}"
        )
    return value


def cmd_list(args: argparse.Namespace) -> Any:
    with shared.usage_errors():
        sort = validate_sort(args.sort, *PASS_TYPE_ID_SORTS)
        fields = normalize_fields(args.fields, PASS_TYPE_ID_FIELDS)
        certificate_fields = normalize_fields(
            args.certificate_fields, CERTIFICATE_FIELDS, "--certificate-fields"
        )
        include = normalize_include(args.include)
    cert_limit = certificates_limit(args.certificates_limit)

    return shared.list_pages(
        args,
        lambda api, limit, next_url: api.get_pass_type_ids(
            ids=split_csv(args.id),
            identifiers=split_csv(args.identifier),
            names=split_csv(args.name),
            sort=sort,
            fields=fields,
            certificate_fields=certificate_fields,
            include=include,
            limit=limit,
            certificates_limit=cert_limit,
            next_url=next_url,
        ),
    )


def cmd_get(args: argparse.Namespace) -> Any:
    pass_type_id = shared.require_flag(args.pass_type_id, "--pass-type-id")
    with shared.usage_errors():
        fields = normalize_fields(args.fields, PASS_TYPE_ID_FIELDS)
        certificate_fields = normalize_fields(
            args.certificate_fields, CERTIFICATE_FIELDS, "--certificate-fields"
        )
        include = normalize_include(args.include)
    cert_limit = certificates_limit(args.certificates_limit)

    return shared.get_client().get_pass_type_id(
        pass_type_id,
        fields=fields,
        certificate_fields=certificate_fields,
        include=include,
        certificates_limit=cert_limit,
    )


def cmd_create(args: argparse.Namespace) -> Any:
    identifier = shared.require_flag(args.identifier, "--identifier")
    name = shared.require_flag(args.name, "--name")
    return shared.get_client().create_pass_type_id(identifier, name)


def cmd_update(args: argparse.Namespace) -> Any:
    pass_type_id = shared.require_flag(args.pass_type_id, "--pass-type-id")
    name = shared.require_flag(args.name, "--name")
    return shared.get_client().update_pass_type_id(pass_type_id, name)


def cmd_delete(args: argparse.Namespace) -> Any:
    pass_type_id = shared.require_flag(args.pass_type_id, "--pass-type-id")
    shared.require_confirm(args)
    shared.get_client().delete_pass_type_id(pass_type_id)
    return shared.deleted(pass_type_id)


def cmd_certificates_list(args: argparse.Namespace) -> Any:
    validate_limit(args.limit)
    pass_type_id = (
        "" if shared.has_next(args) else shared.require_flag(args.pass_type_id, "--pass-type-id")
    )
    with shared.usage_errors():
        fields = normalize_fields(args.fields, CERTIFICATE_FIELDS)
    return shared.list_pages(
        args,
        lambda api, limit, next_url: api.get_pass_type_id_certificates(
            pass_type_id, fields=fields, limit=limit, next_url=next_url
        ),
    )


def _add_detail_flags(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--fields", help=f"Pass type ID fields: {', '.join(PASS_TYPE_ID_FIELDS)}"
    )
    parser.add_argument(
        "--certificate-fields",
        help=f"Certificate fields: {', '.join(CERTIFICATE_FIELDS)}",
    )
    parser.add_argument(
        "--include", help=f"Related resources: {', '.join(PASS_TYPE_ID_INCLUDES)}"
    )
    parser.add_argument(
        "--certificates-limit",
        type=int,
        default=0,
        help=f"Maximum included certificates (1-{MAX_CERTIFICATES_LIMIT})",
    )


def register(subparsers: Any) -> None:
    """Register ``asc pass-type-ids``."""
    pass_type_ids = shared.add_group(
        subparsers, "pass-type-ids", "Manage Wallet pass type IDs.", "pass_type_ids_command"
    )

    p = shared.add_command(pass_type_ids, "list", cmd_list, "List pass type IDs.")
    p.add_argument("--id", help="Filter by pass type ID(s), comma-separated")
    p.add_argument("--identifier", help="Filter by identifier(s), comma-separated")
    p.add_argument("--name", help="Filter by name(s), comma-separated")
    p.add_argument("--sort", help=f"Sort by {', '.join(PASS_TYPE_ID_SORTS)}")
    _add_detail_flags(p)
    shared.add_list_flags(p, "pass type IDs")
    shared.add_output_flags(p)

    p = shared.add_command(pass_type_ids, "get", cmd_get, "Get a pass type ID.")
    p.add_argument("--pass-type-id", help="Pass type ID")
    _add_detail_flags(p)
    shared.add_output_flags(p)

    p = shared.add_command(pass_type_ids, "create", cmd_create, "Register a pass type ID.")
    p.add_argument("--identifier", help="Pass type identifier (e.g., pass.com.example)")
    p.add_argument("--name", help="Pass type name")
    shared.add_output_flags(p)

    p = shared.add_command(pass_type_ids, "update", cmd_update, "Rename a pass type ID.")
    p.add_argument("--pass-type-id", help="Pass type ID")
    p.add_argument("--name", help="Pass type name")
    shared.add_output_flags(p)

    p = shared.add_command(pass_type_ids, "delete", cmd_delete, "Delete a pass type ID.")
    p.add_argument("--pass-type-id", help="Pass type ID")
    shared.add_confirm_flag(p)
    shared.add_output_flags(p)

    certificates = shared.add_group(
        pass_type_ids,
        "certificates",
        "Certificates issued for a pass type ID.",
        "certificates_command",
    )
    p = shared.add_command(
        certificates, "list", cmd_certificates_list, "List certificates for a pass type ID."
    )
    p.add_argument("--pass-type-id", help="Pass type ID")
    p.add_argument("--fields", help=f"Certificate fields: {', '.join(CERTIFICATE_FIELDS)}")
    shared.add_list_flags(p, "certificates")
    shared.add_output_flags(p)
