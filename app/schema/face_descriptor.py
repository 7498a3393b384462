from typing import Annotated, List, Union

from pydantic import AfterValidator, StrictFloat, StrictInt

from app.services.descriptor_matcher import validate_descriptor


def _check_descriptor(values: List[float]) -> List[float]:
    validate_descriptor(values)
    return [float(v) for v in values]


FaceDescriptorValues = Annotated[
    List[Union[StrictFloat, StrictInt]], AfterValidator(_check_descriptor)
]

