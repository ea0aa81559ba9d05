"""
Conversion between pydantic models and storage documents.
This keeps the repository free of backend-specific data handling.
"""

from typing import Any, Dict, Mapping, Type, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from ..exceptions import MarshallingError

ModelT = TypeVar("ModelT", bound=BaseModel)


def model_to_document(model: BaseModel) -> Dict[str, Any]:
    """Serialize a model into a plain dict document (datetimes kept native)."""
    return model.model_dump()


def document_to_model(model_cls: Type[ModelT], document: Mapping[str, Any]) -> ModelT:
    """
    Build a model from a stored document.

    Raises:
        MarshallingError: If the document does not validate against the model
            (wraps the original pydantic ValidationError).
    """
    try:
        return model_cls.model_validate(dict(document))
    except PydanticValidationError as e:
        raise MarshallingError(
            f"Failed to parse {model_cls.__name__} from stored document {document.get('id')!r}: {e}",
            original_exception=e,
        ) from e
