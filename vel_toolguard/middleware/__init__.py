"""
Vel Toolguard Middleware

vel-facing middleware exposing the native tools and policy-checked file tools.
"""

from vel_toolguard.middleware.base import BaseMiddleware, Middleware
from vel_toolguard.middleware.filesystem import PolicyFilesystemMiddleware
from vel_toolguard.middleware.native_tools import NativeToolsMiddleware
