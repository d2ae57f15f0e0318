"""Mod Compiler - Build a project into a mod folder through an injected filesystem"""
from .filesystem import FileSystem, LocalFileSystem, WriteResult
from .orchestrator import ModCompiler, CompileOptions, CompileResult, compile_project

__all__ = [
    "FileSystem",
    "LocalFileSystem",
    "WriteResult",
    "ModCompiler",
    "CompileOptions",
    "CompileResult",
    "compile_project",
]
