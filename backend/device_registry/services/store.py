from __future__ import annotations

from collections.abc import Mapping
from contextlib import contextmanager
from typing import Any, Iterator, List, Optional, Union

from pydantic import BaseModel
from pydantic import ValidationError as SchemaError
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from ..core.config import settings
from ..core.errors import NotFoundError, ValidationError
from ..core.log import logger
from ..db.session import SessionLocal
from ..models.device import INT_MAX, Device
from ..schemas.device import DeviceCreate, DeviceOut, DeviceUpdate
from .locks import KeyedLocks


def _storable(value: int) -> bool:
    return -INT_MAX - 1 <= value <= INT_MAX


def _validate(model: type[BaseModel], data: Any) -> BaseModel:
    try:
        return model.model_validate(data)
    except SchemaError as exc:
        errors = exc.errors(include_url=False)
        first = errors[0]
        field = ".".join(str(part) for part in first["loc"]) or None
        logger.warning(f"Rejected {model.__name__}: {first['msg']} (field: {field})")
        raise ValidationError(first["msg"], detail=errors, field=field) from exc


class NodeDevices:
    """Devices of one node in ascending id order.

    Nothing is read until iteration starts, and every new iteration starts
    over from the lowest id. Rows are pulled in keyset pages so a large node
    never sits in memory at once.
    """

    def __init__(self, store: "DeviceStore", node_id: int, batch_size: int):
        self._store = store
        self.node_id = node_id
        self.batch_size = batch_size

    def __iter__(self) -> Iterator[DeviceOut]:
        after_id = None
        while True:
            page = self._store._node_page(self.node_id, after_id, self.batch_size)
            yield from page
            if len(page) < self.batch_size:
                return
            after_id = page[-1].id

    def __repr__(self) -> str:
        return f"<NodeDevices(node_id={self.node_id})>"


class DeviceStore:
    """Durable storage of Device records.

    Writes to the same id are serialized in-process; each operation runs in
    its own transaction so readers see a row either before or after a write.
    """

    def __init__(
        self,
        session_factory: Optional[sessionmaker] = None,
        batch_size: Optional[int] = None,
        enforce_endpoint_unique: Optional[bool] = None,
    ):
        self._session_factory = session_factory or SessionLocal
        self.batch_size = batch_size or settings.LIST_BATCH_SIZE
        self.enforce_endpoint_unique = (
            settings.ENFORCE_ENDPOINT_UNIQUE if enforce_endpoint_unique is None else enforce_endpoint_unique
        )
        self._locks = KeyedLocks()

    @contextmanager
    def _session(self) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def create(self, device: Union[Mapping, DeviceCreate]) -> DeviceOut:
        payload = _validate(DeviceCreate, device)
        if payload.id is None:
            return self._insert(payload)
        with self._locks.hold(("id", payload.id)):
            return self._insert(payload)

    def _insert(self, payload: DeviceCreate) -> DeviceOut:
        if not self.enforce_endpoint_unique:
            return self._insert_row(payload)
        with self._locks.hold(("endpoint", payload.node_id, payload.endpoint_id)):
            return self._insert_row(payload)

    def _insert_row(self, payload: DeviceCreate) -> DeviceOut:
        try:
            with self._session() as session:
                if payload.id is not None and session.get(Device, payload.id) is not None:
                    logger.warning(f"Rejected create: device id {payload.id} already exists")
                    raise ValidationError(f"Device with id '{payload.id}' already exists", field="id")
                if self.enforce_endpoint_unique:
                    taken = session.execute(
                        select(Device.id).where(
                            Device.node_id == payload.node_id,
                            Device.endpoint_id == payload.endpoint_id,
                        )
                    ).first()
                    if taken is not None:
                        logger.warning(
                            f"Rejected create: endpoint {payload.node_id}/{payload.endpoint_id} "
                            f"already bound to device {taken.id}"
                        )
                        raise ValidationError(
                            f"Endpoint {payload.endpoint_id} on node {payload.node_id} "
                            f"is already bound to device '{taken.id}'",
                            field="endpoint_id",
                        )
                row = Device(**payload.model_dump(exclude_none=True))
                session.add(row)
                session.commit()
                stored = DeviceOut.model_validate(row)
        except IntegrityError as exc:
            logger.warning(f"Rejected create: {exc.orig}")
            if payload.id is None:
                raise ValidationError("Device could not be stored", detail=str(exc.orig)) from exc
            raise ValidationError(
                f"Device with id '{payload.id}' already exists", detail=str(exc.orig), field="id"
            ) from exc
        logger.info(f"Device created: id={stored.id}, node={stored.node_id}, endpoint={stored.endpoint_id}")
        return stored

    def get(self, device_id: int) -> DeviceOut:
        if not _storable(device_id):
            raise NotFoundError(device_id)
        with self._session() as session:
            row = session.get(Device, device_id)
            if row is None:
                raise NotFoundError(device_id)
            return DeviceOut.model_validate(row)

    def update(self, device_id: int, patch: Union[Mapping, DeviceUpdate]) -> DeviceOut:
        if not _storable(device_id):
            logger.warning(f"Rejected update: device id {device_id} not found")
            raise NotFoundError(device_id)
        with self._locks.hold(("id", device_id)):
            with self._session() as session:
                row = session.get(Device, device_id)
                if row is None:
                    logger.warning(f"Rejected update: device id {device_id} not found")
                    raise NotFoundError(device_id)
                changes = _validate(DeviceUpdate, patch)
                for field in changes.model_fields_set:
                    setattr(row, field, getattr(changes, field))
                session.commit()
                stored = DeviceOut.model_validate(row)
        logger.info(f"Device updated: id={device_id}, fields={sorted(changes.model_fields_set)}")
        return stored

    def delete(self, device_id: int) -> None:
        if not _storable(device_id):
            logger.warning(f"Rejected delete: device id {device_id} not found")
            raise NotFoundError(device_id)
        with self._locks.hold(("id", device_id)):
            with self._session() as session:
                result = session.execute(delete(Device).where(Device.id == device_id))
                if result.rowcount == 0:
                    logger.warning(f"Rejected delete: device id {device_id} not found")
                    raise NotFoundError(device_id)
                session.commit()
        logger.info(f"Device deleted: id={device_id}")

    def list_by_node(self, node_id: int) -> NodeDevices:
        return NodeDevices(self, node_id, self.batch_size)

    def _node_page(self, node_id: int, after_id: Optional[int], limit: int) -> List[DeviceOut]:
        if not _storable(node_id):
            return []
        q = select(Device).where(Device.node_id == node_id)
        if after_id is not None:
            q = q.where(Device.id > after_id)
        q = q.order_by(Device.id.asc()).limit(limit)
        with self._session() as session:
            return [DeviceOut.model_validate(row) for row in session.execute(q).scalars()]

    def find_by_endpoint(self, node_id: int, endpoint_id: int) -> List[DeviceOut]:
        if not (_storable(node_id) and _storable(endpoint_id)):
            return []
        q = (
            select(Device)
            .where(Device.node_id == node_id, Device.endpoint_id == endpoint_id)
            .order_by(Device.id.asc())
        )
        with self._session() as session:
            return [DeviceOut.model_validate(row) for row in session.execute(q).scalars()]
