from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Path, Request, status

from ..db import TodoStore
from ..schemas import ErrorOut, TodoCreate, TodoOut, TodoUpdate

router = APIRouter(
    prefix="/todos",
    tags=["todos"],
)

# Ids are generated by a serial column.
MAX_TODO_ID = 2_147_483_647

TODO_NOT_FOUND = "Todo not found"

_ERROR_RESPONSES = {
    500: {"model": ErrorOut, "description": "Storage failure"},
}


# PUBLIC_INTERFACE
def get_store(request: Request) -> TodoStore:
    """
    Dependency returning the storage client created at application startup.
    """
    return request.app.state.store


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=List[TodoOut],
    summary="List Todos",
    description="List every todo, most recently created first.",
    responses=_ERROR_RESPONSES,
)
def list_todos(store: TodoStore = Depends(get_store)) -> List[TodoOut]:
    """
    List all todos ordered by id, descending.
    """
    return [TodoOut(**item) for item in store.list_todos()]  # type: ignore[arg-type]


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=TodoOut,
    summary="Create Todo",
    description="Create a new Todo item and return it with its assigned id.",
    responses={400: {"model": ErrorOut, "description": "Title is required"}, **_ERROR_RESPONSES},
)
def create_todo(payload: TodoCreate, store: TodoStore = Depends(get_store)) -> TodoOut:
    """
    Create a new Todo.
    """
    created = store.create_todo(payload.title, payload.completed)  # type: ignore[arg-type]
    return TodoOut(**created)  # type: ignore[arg-type]


# PUBLIC_INTERFACE
@router.put(
    "/{todo_id}",
    response_model=TodoOut,
    summary="Update Todo",
    description=(
        "Replace the title of a Todo and set its completion flag. "
        "When completed is omitted the stored flag is kept."
    ),
    responses={
        400: {"model": ErrorOut, "description": "Invalid title or completed flag"},
        404: {"model": ErrorOut, "description": TODO_NOT_FOUND},
        **_ERROR_RESPONSES,
    },
)
def update_todo(
    payload: TodoUpdate,
    todo_id: int = Path(..., ge=1, le=MAX_TODO_ID, description="Todo identifier"),
    store: TodoStore = Depends(get_store),
) -> TodoOut:
    """
    Update a Todo in place; the id never changes.
    """
    updated = store.update_todo(todo_id, payload.title, payload.completed)  # type: ignore[arg-type]
    if updated is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=TODO_NOT_FOUND)
    return TodoOut(**updated)  # type: ignore[arg-type]


# PUBLIC_INTERFACE
@router.delete(
    "/{todo_id}",
    response_model=TodoOut,
    summary="Delete Todo",
    description="Delete a Todo item by ID and return the deleted row.",
    responses={404: {"model": ErrorOut, "description": TODO_NOT_FOUND}, **_ERROR_RESPONSES},
)
def delete_todo(
    todo_id: int = Path(..., ge=1, le=MAX_TODO_ID, description="Todo identifier"),
    store: TodoStore = Depends(get_store),
) -> TodoOut:
    """
    Delete a Todo. Deleting an id that no longer exists is always a 404.
    """
    deleted = store.delete_todo(todo_id)
    if deleted is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=TODO_NOT_FOUND)
    return TodoOut(**deleted)  # type: ignore[arg-type]
