from typing import Optional
from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession
from clinic.database import get_db
from clinic.models.patient import Patient
from clinic.responses import success
from clinic.schemas.patient import PatientCreate, PatientUpdate, PatientResponse, VisitCreate, VisitUpdate
from clinic.auth import get_current_user, UserPrincipal
from clinic.services.patient_service import patient_service
from clinic.services.report_service import report_service

router = APIRouter()


def _serialize(patient: Patient) -> dict:
    return PatientResponse.model_validate(patient).model_dump(mode="json")


@router.get("")
async def list_patients(
    search: str = Query("", description="Match any text field of the record or its visits"),
    db: AsyncSession = Depends(get_db),
    current_user: UserPrincipal = Depends(get_current_user),
):
    patients = await patient_service.list_patients(db, current_user.account_id, search)
    return success(
        f"Found {len(patients)} patient record(s)",
        [_serialize(p) for p in patients],
    )


@router.post("", status_code=201)
async def create_patient(
    data: PatientCreate,
    db: AsyncSession = Depends(get_db),
    current_user: UserPrincipal = Depends(get_current_user),
):
    patient = await patient_service.create(db, current_user.account_id, data)
    return success("Patient created successfully", _serialize(patient))


@router.get("/{patient_id}")
async def get_patient(
    patient_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: UserPrincipal = Depends(get_current_user),
):
    patient = await patient_service.get_patient(db, current_user.account_id, patient_id)
    return success("Patient retrieved", _serialize(patient))


@router.put("/{patient_id}")
async def update_patient(
    patient_id: str,
    data: PatientUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: UserPrincipal = Depends(get_current_user),
):
    patient = await patient_service.update(db, current_user.account_id, patient_id, data)
    return success("Patient updated successfully", _serialize(patient))


@router.delete("/{patient_id}")
async def delete_patient(
    patient_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: UserPrincipal = Depends(get_current_user),
):
    await patient_service.delete(db, current_user.account_id, patient_id)
    return success("Patient deleted successfully")


@router.post("/{patient_id}/visits", status_code=201)
async def add_visit(
    patient_id: str,
    data: VisitCreate,
    db: AsyncSession = Depends(get_db),
    current_user: UserPrincipal = Depends(get_current_user),
):
    patient = await patient_service.add_visit(db, current_user.account_id, patient_id, data)
    return success("Treatment entry added successfully", _serialize(patient))


@router.put("/{patient_id}/visits/{visit_id}")
async def update_visit(
    patient_id: str,
    visit_id: str,
    data: VisitUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: UserPrincipal = Depends(get_current_user),
):
    patient = await patient_service.update_visit(db, current_user.account_id, patient_id, visit_id, data)
    return success("Treatment entry updated successfully", _serialize(patient))


@router.delete("/{patient_id}/visits/{visit_id}")
async def remove_visit(
    patient_id: str,
    visit_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: UserPrincipal = Depends(get_current_user),
):
    patient = await patient_service.remove_visit(db, current_user.account_id, patient_id, visit_id)
    return success("Treatment entry deleted successfully", _serialize(patient))


@router.get("/{patient_id}/report")
async def download_report(
    patient_id: str,
    visit_id: Optional[list[str]] = Query(None, description="Repeat to pick visits; omit for all"),
    db: AsyncSession = Depends(get_db),
    current_user: UserPrincipal = Depends(get_current_user),
):
    filename, content = await report_service.generate(db, current_user.account_id, patient_id, visit_id)
    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
