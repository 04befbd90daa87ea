"""
Core modules for voidweaver.

This package contains the core business logic for:
- The tag and module data model
- Tag text codec and prompt assembly
- The module store, refinement merge and history rings
- Backend client, stream demultiplexing and session persistence
"""
