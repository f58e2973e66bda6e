"""
Normalization of vendor model listings.

Most OpenAI-compatible vendors answer ``GET /models`` with
``{"data": [{"id": ..., "owned_by": ...}]}``. GitHub Models and Together
return a bare list with their own field names. Each dialect gets an entry
type and an explicit mapping to Model.
"""
import re
from dataclasses import dataclass
from typing import Any, List, Optional, Union

from .types import Model


@dataclass(frozen=True)
class OpenAIModelEntry:
    id: str
    owned_by: Optional[str] = None


@dataclass(frozen=True)
class GithubModelEntry:
    name: str
    summary: Optional[str] = None
    publisher: Optional[str] = None


@dataclass(frozen=True)
class TogetherModelEntry:
    id: str
    display_name: Optional[str] = None
    organization: Optional[str] = None


ModelEntry = Union[OpenAIModelEntry, GithubModelEntry, TogetherModelEntry]


def _items(payload: Any) -> List[dict]:
    if isinstance(payload, dict):
        payload = payload.get("data") or []
    if not isinstance(payload, list):
        return []
    return [item for item in payload if isinstance(item, dict)]


def parse_listing(provider_id: str, payload: Any) -> List[ModelEntry]:
    """
    Parse a raw ``/models`` payload into entries of the provider's dialect.

    Items missing their identifier field are skipped.
    """
    items = _items(payload)

    match provider_id:
        case "github":
            return [
                GithubModelEntry(name=item["name"], summary=item.get("summary"), publisher=item.get("publisher"))
                for item in items if item.get("name")
            ]
        case "together":
            return [
                TogetherModelEntry(
                    id=item["id"],
                    display_name=item.get("display_name"),
                    organization=item.get("organization"),
                )
                for item in items if item.get("id")
            ]
        case _:
            return [
                OpenAIModelEntry(id=item["id"], owned_by=item.get("owned_by"))
                for item in items if item.get("id")
            ]


def default_group_name(model_id: str) -> str:
    """
    Derive a display group from a model id.

    ``"org/llama-3-70b"`` groups under ``"org"``; ``"gpt-4o-mini"`` under
    ``"gpt-4o"``.
    """
    if "/" in model_id:
        return model_id.split("/", 1)[0]
    parts = re.split(r"[-:]", model_id)
    if len(parts) > 1:
        return "-".join(parts[:2])
    return model_id


def to_model(entry: ModelEntry, provider_id: str) -> Model:
    match entry:
        case GithubModelEntry(name=name, summary=summary, publisher=publisher):
            return Model(
                id=name, provider=provider_id, name=name, group=default_group_name(name),
                owned_by=publisher, description=summary,
            )
        case TogetherModelEntry(id=model_id, display_name=display_name, organization=organization):
            return Model(
                id=model_id, provider=provider_id, name=model_id, group=default_group_name(model_id),
                owned_by=organization, description=display_name,
            )
        case OpenAIModelEntry(id=model_id, owned_by=owned_by):
            return Model(
                id=model_id, provider=provider_id, name=model_id, group=default_group_name(model_id),
                owned_by=owned_by,
            )
        case _:
            raise TypeError(f"Unknown model entry type: {type(entry).__name__}")
