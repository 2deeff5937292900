from campus.core.exceptions import (
    AppError,
    CapacityConflictError,
    ConflictError,
    DeleteConflictError,
    InvalidArgsError,
    NotFoundError,
)


def test_app_error_defaults():
    err = AppError("Generic error")
    assert err.status_code == 500
    assert err.details == {}
    assert err.code == "app_error"


def test_not_found_error_structure():
    err = NotFoundError("Course", "CRS9")
    assert err.status_code == 404
    assert err.message == "Course with id CRS9 not found"
    assert err.details == {"entity": "Course", "id": "CRS9"}


def test_invalid_args_maps_to_bad_request():
    err = InvalidArgsError("Start time must be before end time", details={"start_time": "11:00"})
    assert err.status_code == 400
    assert err.details == {"start_time": "11:00"}


def test_conflicts_share_status_but_keep_their_codes():
    capacity = CapacityConflictError("Class session CL101 is full")
    delete = DeleteConflictError("Department", "DEP1", "Cannot delete department")

    assert isinstance(capacity, ConflictError)
    assert capacity.status_code == delete.status_code == 409
    assert capacity.code == "capacity_conflict"
    assert delete.code == "delete_conflict"
    assert delete.details == {"entity": "Department", "id": "DEP1"}
