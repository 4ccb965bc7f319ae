"""
api/routes/v1/vault.py -- Per-account saved passwords.

Routes:
  GET    /api/v1/vault            -- list caller's entries, newest first
  POST   /api/v1/vault            -- save a new entry; 201
  DELETE /api/v1/vault/{entry_id} -- delete an entry; 204

All routes require auth. IDOR guard: every store call passes the caller's
account id, and the store's WHERE clause requires it to match.
"""

from fastapi import APIRouter, Depends, HTTPException, Request, Response

from api.models import VaultEntryCreate, VaultEntryResponse
from auth.dependencies import get_current_account
from auth.models import UserAccount
from vault.models import VaultEntry
from vault.store import VaultStore

router = APIRouter()


@router.get("/vault", response_model=list[VaultEntryResponse])
def list_entries(
    request: Request,
    current_account: UserAccount = Depends(get_current_account),
) -> list[VaultEntryResponse]:
    vault: VaultStore = request.app.state.vault
    return [VaultEntryResponse.from_entry(e) for e in vault.list_entries(current_account.id)]


@router.post("/vault", response_model=VaultEntryResponse, status_code=201)
def create_entry(
    request: Request,
    body: VaultEntryCreate,
    current_account: UserAccount = Depends(get_current_account),
) -> VaultEntryResponse:
    vault: VaultStore = request.app.state.vault
    entry_id = vault.create_entry(VaultEntry(owner_id=current_account.id, label=body.label, value=body.value))
    created = vault.get_entry(entry_id, current_account.id)
    if created is None:
        raise HTTPException(
            status_code=500,
            detail={"code": "internal_error", "message": "Entry not found after write."},
        )
    return VaultEntryResponse.from_entry(created)


@router.delete("/vault/{entry_id}", status_code=204)
def delete_entry(
    request: Request,
    entry_id: int,
    current_account: UserAccount = Depends(get_current_account),
) -> Response:
    """Delete one entry. 404 for unknown ids and for other accounts' entries alike."""
    vault: VaultStore = request.app.state.vault
    if not vault.delete_entry(entry_id, current_account.id):
        raise HTTPException(
            status_code=404,
            detail={"code": "not_found", "message": "Vault entry not found."},
        )
    return Response(status_code=204)
