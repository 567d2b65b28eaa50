"""Errors raised by the contact sync services."""

from typing import Optional


class ContactSyncError(Exception):
    """Base class for contact sync failures."""


class ReferencedEntityNotFound(ContactSyncError):
    """A record the event depends on does not exist."""

    def __init__(self, entity: str, entity_id: Optional[str]):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found: {entity_id}")


class ContactAlreadyExists(ContactSyncError):
    """A contact with this (store, email) pair already exists."""

    def __init__(self, store_id: str, email: str):
        self.store_id = store_id
        self.email = email
        super().__init__(f"Contact with email {email} already exists in store {store_id}")


class InvalidCursor(ContactSyncError):
    """A pagination cursor could not be decoded."""
