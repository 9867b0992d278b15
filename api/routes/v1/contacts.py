"""
api/routes/v1/contacts.py -- Emergency contact REST endpoints.

Routes:
  GET    /api/v1/contacts              -- list the caller's contacts
  POST   /api/v1/contacts              -- add a contact; 201
  DELETE /api/v1/contacts/{contact_id} -- remove a contact; 204

All routes require a live session. Ownership is enforced in ContactStore's
WHERE clauses: a contact id belonging to another account behaves exactly like
a missing one (404).
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, Response

from api.models import ContactCreate, ContactResponse
from auth.dependencies import get_current_account
from auth.models import Account
from contacts.models import EmergencyContact
from contacts.store import ContactStore

router = APIRouter()


@router.get("/contacts", response_model=list[ContactResponse])
def list_contacts(
    request: Request,
    current_account: Account = Depends(get_current_account),
) -> list[ContactResponse]:
    contact_store: ContactStore = request.app.state.contact_store
    return [ContactResponse.from_contact(c) for c in contact_store.list_contacts(current_account.id)]


@router.post("/contacts", response_model=ContactResponse, status_code=201)
def add_contact(
    request: Request,
    body: ContactCreate,
    current_account: Account = Depends(get_current_account),
) -> ContactResponse:
    """Add an emergency contact for the signed-in account."""
    contact_store: ContactStore = request.app.state.contact_store
    contact_id = contact_store.add_contact(
        EmergencyContact(
            account_id=current_account.id,
            name=body.name,
            phone=body.phone,
            relationship=body.relationship,
        )
    )
    created = contact_store.get_contact(contact_id, current_account.id)
    if created is None:
        raise HTTPException(
            status_code=500,
            detail={"code": "internal_error", "message": "Contact not found after write."},
        )
    return ContactResponse.from_contact(created)


@router.delete("/contacts/{contact_id}", status_code=204)
def delete_contact(
    request: Request,
    contact_id: int,
    current_account: Account = Depends(get_current_account),
) -> Response:
    """Remove a contact. Ownership is checked in the store [IDOR guard]."""
    contact_store: ContactStore = request.app.state.contact_store
    if not contact_store.delete_contact(contact_id, current_account.id):
        raise HTTPException(
            status_code=404,
            detail={"code": "not_found", "message": "Contact not found."},
        )
    return Response(status_code=204)
