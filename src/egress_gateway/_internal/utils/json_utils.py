from typing import Any

import orjson
from pydantic import BaseModel


def pydantic_orjson_dumps(v: Any, *, default: Any) -> str:
    return orjson.dumps(
        v,
        option=orjson.OPT_NON_STR_KEYS,
        default=orjson_default,
    ).decode()


def orjson_default(obj):
    if isinstance(obj, BaseModel):
        return obj.dict(by_alias=True)
    raise TypeError
