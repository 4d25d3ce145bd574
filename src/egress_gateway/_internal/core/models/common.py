import orjson
from pydantic_duality import DualBaseModel

from egress_gateway._internal.utils.json_utils import pydantic_orjson_dumps


def to_camel(string: str) -> str:
    first, *rest = string.split("_")
    return first + "".join(word.capitalize() for word in rest)


# DualBaseModel creates two classes for the model:
# one with extra = "forbid" (CoreModel/CoreModel.__request__),
# and another with extra = "ignore" (CoreModel.__response__).
# Objects we build ourselves are validated strictly while objects read back
# from the API server may carry fields we do not model.
class CoreModel(DualBaseModel):
    class Config:
        json_loads = orjson.loads
        json_dumps = pydantic_orjson_dumps
        alias_generator = to_camel
        allow_population_by_field_name = True
