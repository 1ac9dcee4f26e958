"""Adapter layer package for remote process service integration boundaries."""

from .interfaces import ProcessServicePort
from .process_service import HttpProcessServiceAdapter

__all__ = [
	"HttpProcessServiceAdapter",
	"ProcessServicePort",
]
