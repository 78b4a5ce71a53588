# solarcrm/serializers.py
import json
from typing import Any, Dict, Iterable, List, Optional

from sqlmodel import SQLModel

from solarcrm import storage

# camelCase keys the mobile/admin clients expect where plain camel-casing
# of the column name would differ (sized_kw -> sizedKW, not sizedKw)
_KEY_OVERRIDES = {
    "sized_kw": "sizedKW",
    "estimate_inr": "estimateINR",
    "budget_inr": "budgetINR",
    "rate_per_kw": "ratePerKW",
    "annual_gen_per_kw": "annualGenPerKW",
    "om_per_kw_year": "omPerKWYear",
    "tariff_inr": "tariffINR",
}

_HIDDEN = {"password_hash"}


def camel(key: str) -> str:
    if key in _KEY_OVERRIDES:
        return _KEY_OVERRIDES[key]
    head, *rest = key.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def to_dict(row: Optional[SQLModel], *, exclude: Iterable[str] = ()) -> Optional[Dict[str, Any]]:
    if row is None:
        return None
    skip = _HIDDEN | set(exclude)
    return {camel(k): v for k, v in row.model_dump().items() if k not in skip}


def lead_to_dict(lead, *, sign: bool = True, **extra) -> Dict[str, Any]:
    data = to_dict(lead)
    if sign:
        data["certificateUrl"] = storage.sign_if_bucket_url(data.get("certificateUrl"))
    data.update(extra)
    return data


def post_to_dict(post) -> Dict[str, Any]:
    data = to_dict(post)
    data["imageUrl"] = storage.sign_if_bucket_url(data.get("imageUrl"))
    return data


def staff_brief(staff, *, with_phone: bool = False) -> Optional[Dict[str, Any]]:
    if staff is None:
        return None
    out = {"id": staff.id, "name": staff.name, "email": staff.email}
    if with_phone:
        out["phone"] = staff.phone
    return out


def steps_to_list(steps) -> List[Dict[str, Any]]:
    return [to_dict(s) for s in steps]


def certificate_event_to_dict(event) -> Dict[str, Any]:
    data = to_dict(event, exclude=("payload_json", "category"))
    payload = json.loads(event.payload_json or "{}")
    data["certificateId"] = payload.get("certificate_id")
    data["certificateUrl"] = storage.sign_if_bucket_url(payload.get("url"))
    return data
