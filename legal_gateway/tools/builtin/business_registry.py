"""
Business Registry Tools

Local handler over the business registry provider (openreyestr). Calls go
through the Remote Service Client; the provider answers with JSON text in
``content[0].text``, rendered here as Ukrainian Markdown.

Pattern: ToolHandler family (ToolFamily.BUSINESS_REGISTRY)
"""

import json
from typing import Any, Optional

from legal_gateway.clients.remote_service import RemoteServiceClient
from legal_gateway.models.domain import (
    CapabilityDescriptor,
    Provider,
    Route,
    ToolFamily,
    ToolResult,
)
from legal_gateway.observability.logging import get_logger
from legal_gateway.tools.base import ToolHandler, int_arg, require_str

logger = get_logger(__name__)

DEFAULT_LIMIT = 50
NOT_AVAILABLE = "н/д"

ENTITY_TYPES = {
    "UO": "Юридична особа",
    "FOP": "Фізична особа-підприємець",
    "FSU": "Громадське формування",
}


def translate_entity_type(entity_type: Any) -> str:
    return ENTITY_TYPES.get(entity_type, str(entity_type) if entity_type else NOT_AVAILABLE)


def parse_registry_payload(body: Any) -> Any:
    """
    JSON payload of a registry response, or None when absent or malformed.

    Accepts the unwrapped result (``{"content": [...]}``) as well as the
    full body (``{"result": {"content": [...]}}``).
    """
    if isinstance(body, dict) and "result" in body and "content" not in body:
        body = body["result"]
    try:
        text = body["content"][0]["text"]
    except (KeyError, IndexError, TypeError):
        return None
    if not isinstance(text, str):
        return None
    try:
        return json.loads(text)
    except ValueError:
        return None


# =============================================================================
# Markdown Rendering
# =============================================================================


def format_entities(entities: Any, args: dict[str, Any]) -> str:
    items = [e for e in entities if isinstance(e, dict)] if isinstance(entities, list) else []
    lines = [
        "# Результати пошуку суб'єктів господарювання",
        "",
        f"**Запит:** {args.get('query') or args.get('edrpou') or 'всі'}",
        f"**Знайдено:** {len(items)}",
        "",
    ]
    for idx, entity in enumerate(items, start=1):
        lines.append(f"## {idx}. {entity.get('name') or entity.get('short_name')}")
        lines.append("")
        lines.append(f"- **ЄДРПОУ:** {entity.get('edrpou') or NOT_AVAILABLE}")
        lines.append(f"- **Номер запису:** {entity.get('record')}")
        lines.append(f"- **Тип:** {translate_entity_type(entity.get('entity_type'))}")
        lines.append(f"- **Статус:** {entity.get('stan') or NOT_AVAILABLE}")
        if entity.get("opf"):
            lines.append(f"- **ОПФ:** {entity['opf']}")
        lines.append("")
    return "\n".join(lines) + "\n"


def format_entity_details(details: dict[str, Any]) -> str:
    lines = [
        "# Детальна інформація про суб'єкт господарювання",
        "",
        f"**Номер запису:** {details.get('record')}",
        f"**Тип:** {translate_entity_type(details.get('entityType'))}",
        "",
    ]

    main = details.get("mainInfo")
    if isinstance(main, dict) and main:
        lines += ["## Основна інформація", ""]
        lines.append(f"- **Назва:** {main.get('name') or main.get('short_name')}")
        for key, label in (
            ("edrpou", "ЄДРПОУ"),
            ("stan", "Статус"),
            ("opf", "ОПФ"),
            ("registration", "Дата реєстрації"),
        ):
            if main.get(key):
                lines.append(f"- **{label}:** {main[key]}")
        lines.append("")

    founders = details.get("founders") or []
    if founders:
        lines += [f"## Засновники ({len(founders)})", ""]
        for founder in founders[:5]:
            lines.append(f"- {founder.get('founder_name') or NOT_AVAILABLE}")
        if len(founders) > 5:
            lines.append(f"... та ще {len(founders) - 5}")
        lines.append("")

    beneficiaries = details.get("beneficiaries") or []
    if beneficiaries:
        lines += [f"## Бенефіціари ({len(beneficiaries)})", ""]
        for beneficiary in beneficiaries:
            lines.append(f"- {beneficiary.get('beneficiary_info') or NOT_AVAILABLE}")
        lines.append("")

    return "\n".join(lines) + "\n"


def format_beneficiaries(query: str, items: list[dict[str, Any]]) -> str:
    lines = [f'# Пошук бенефіціарів: "{query}"', "", f"**Знайдено:** {len(items)}", ""]
    for idx, item in enumerate(items, start=1):
        lines.append(f"## {idx}. {item.get('beneficiary_info') or NOT_AVAILABLE}")
        lines.append("")
        if item.get("entity_name"):
            lines.append(f"- **Суб'єкт:** {item['entity_name']}")
        if item.get("entity_record"):
            lines.append(f"- **Номер запису:** {item['entity_record']}")
        lines.append("")
    return "\n".join(lines) + "\n"


def format_edrpou_lookup(edrpou: str, entity: dict[str, Any]) -> str:
    lines = [
        f"# Інформація за ЄДРПОУ: {edrpou}",
        "",
        f"- **Назва:** {entity.get('name') or entity.get('short_name')}",
        f"- **Номер запису:** {entity.get('record')}",
        f"- **Тип:** {translate_entity_type(entity.get('entity_type'))}",
        f"- **Статус:** {entity.get('stan') or NOT_AVAILABLE}",
    ]
    if entity.get("opf"):
        lines.append(f"- **ОПФ:** {entity['opf']}")
    return "\n".join(lines) + "\n"


# =============================================================================
# Tool Schemas
# =============================================================================

TOOL_DEFINITIONS: tuple[CapabilityDescriptor, ...] = (
    CapabilityDescriptor(
        name="search_business_entities",
        description=(
            "Пошук суб'єктів господарювання в Єдиному державному реєстрі України "
            "за назвою, ЄДРПОУ або іншими критеріями"
        ),
        input_schema={
            "type": "object",
            "properties": {
                "query": {"type": "string", "description": "Назва або частина назви суб'єкта"},
                "edrpou": {"type": "string", "description": "Код ЄДРПОУ"},
                "entity_type": {
                    "type": "string",
                    "enum": ["UO", "FOP", "FSU", "ALL"],
                    "description": "UO (юридичні особи), FOP (ФОП), FSU (громадські формування), ALL",
                },
                "status": {"type": "string", "description": "Статус діяльності"},
                "limit": {"type": "number", "description": "Максимум результатів (1-100)"},
            },
        },
    ),
    CapabilityDescriptor(
        name="get_business_entity_details",
        description=(
            "Повна інформація про суб'єкт господарювання: засновники, бенефіціари, "
            "керівники, філії"
        ),
        input_schema={
            "type": "object",
            "properties": {
                "record": {"type": "string", "description": "Номер запису в реєстрі"},
                "entity_type": {"type": "string", "enum": ["UO", "FOP", "FSU"]},
            },
            "required": ["record"],
        },
    ),
    CapabilityDescriptor(
        name="search_entity_beneficiaries",
        description="Пошук кінцевих бенефіціарних власників компаній за ім'ям",
        input_schema={
            "type": "object",
            "properties": {
                "query": {"type": "string", "description": "Ім'я або частина імені бенефіціара"},
                "limit": {"type": "number", "description": "Максимум результатів (1-100)"},
            },
            "required": ["query"],
        },
    ),
    CapabilityDescriptor(
        name="lookup_by_edrpou",
        description="Швидкий пошук суб'єкта господарювання за кодом ЄДРПОУ",
        input_schema={
            "type": "object",
            "properties": {
                "edrpou": {"type": "string", "description": "Код ЄДРПОУ (8 цифр)"},
            },
            "required": ["edrpou"],
        },
    ),
)


# =============================================================================
# Handler
# =============================================================================


class BusinessRegistryTools(ToolHandler):
    """Business registry tool family."""

    family = ToolFamily.BUSINESS_REGISTRY

    def __init__(self, remote_client: RemoteServiceClient) -> None:
        self._remote = remote_client

    def get_tool_definitions(self) -> list[CapabilityDescriptor]:
        return list(TOOL_DEFINITIONS)

    async def execute_tool(self, name: str, args: dict[str, Any]) -> Optional[ToolResult]:
        args = args or {}
        if name == "search_business_entities":
            return await self.search_business_entities(args)
        if name == "get_business_entity_details":
            return await self.get_business_entity_details(args)
        if name == "search_entity_beneficiaries":
            return await self.search_entity_beneficiaries(args)
        if name == "lookup_by_edrpou":
            return await self.lookup_by_edrpou(args)
        return None

    async def _call(self, operation: str, args: dict[str, Any]) -> Any:
        route = Route.remote(Provider.OPENREYESTR, operation)
        body = await self._remote.execute(
            route, {key: value for key, value in args.items() if value is not None}
        )
        return parse_registry_payload(body)

    async def search_business_entities(self, args: dict[str, Any]) -> ToolResult:
        logger.info("search_business_entities", query=args.get("query"))
        parsed = await self._call(
            "search_entities",
            {
                "query": args.get("query"),
                "edrpou": args.get("edrpou"),
                "entityType": args.get("entity_type") or "ALL",
                "stan": args.get("status"),
                "limit": int_arg(args, "limit", DEFAULT_LIMIT, 1, 100),
            },
        )
        if parsed is None:
            return self.wrap_response("Помилка: не вдалося отримати дані з реєстру")
        return self.wrap_response(format_entities(parsed, args))

    async def get_business_entity_details(self, args: dict[str, Any]) -> ToolResult:
        record = require_str(args, "record")
        logger.info("get_business_entity_details", record=record)
        parsed = await self._call(
            "get_entity_details", {"record": record, "entityType": args.get("entity_type")}
        )
        if not isinstance(parsed, dict):
            return self.wrap_response(
                "Помилка: суб'єкт не знайдено або помилка отримання даних"
            )
        return self.wrap_response(format_entity_details(parsed))

    async def search_entity_beneficiaries(self, args: dict[str, Any]) -> ToolResult:
        query = require_str(args, "query")
        logger.info("search_entity_beneficiaries", query=query)
        parsed = await self._call(
            "search_beneficiaries",
            {"query": query, "limit": int_arg(args, "limit", DEFAULT_LIMIT, 1, 100)},
        )
        if not isinstance(parsed, list) or not parsed:
            return self.wrap_response("Бенефіціарів не знайдено")
        return self.wrap_response(
            format_beneficiaries(query, [item for item in parsed if isinstance(item, dict)])
        )

    async def lookup_by_edrpou(self, args: dict[str, Any]) -> ToolResult:
        edrpou = require_str(args, "edrpou")
        logger.info("lookup_by_edrpou", edrpou=edrpou)
        parsed = await self._call("get_by_edrpou", {"edrpou": edrpou})
        if not isinstance(parsed, dict):
            return self.wrap_response(f"Суб'єкт з ЄДРПОУ {edrpou} не знайдено")
        return self.wrap_response(format_edrpou_lookup(edrpou, parsed))
