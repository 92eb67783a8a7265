from typing import Any

from .base_service import BaseService
from ..clock import Clock
from ..store.document_store import DocumentStore
from ..utilities.service_error import ServiceConnectionError


class DataSources:
	""" Named BaseServices sharing one store and one clock.
	Register each collection once at startup, then look services up by name. """

	def __init__(self, store: DocumentStore, *, clock: Clock | None = None) -> None:
		self.store = store
		self.clock = clock
		self._services: dict[str, BaseService] = {}

	def create_service(
			self,
			name: str,
			collection_name: str | None = None,
			default_sort: dict[str, int] | None = None,
			*,
			service_cls: type[BaseService] = BaseService,
			**kwargs: Any
		) -> BaseService:
		""" Registers a service under name. The collection defaults to the same name. """
		service = service_cls(
			self.store,
			collection_name or name,
			clock=self.clock,
			default_sort=default_sort,
			**kwargs
		)
		self._services[name] = service
		return service

	def get_service(self, name: str) -> BaseService:
		service = self._services.get(name)
		if service is None:
			raise ServiceConnectionError(f"Unable to connect to collection {name}")
		return service

	def __contains__(self, name: object) -> bool:
		return name in self._services

	def names(self) -> list[str]:
		return list(self._services)
