"""
Todo Service package.

A FastAPI application exposing CRUD operations over a single ``todos`` table.
Build an application with ``todo_service.main.create_app`` or serve the
default one with the ``todo-service`` console script.
"""

__version__ = "0.1.0"
