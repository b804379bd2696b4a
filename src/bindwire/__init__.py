from bindwire.bindings import (
    Binding,
    ClassBinding,
    InstanceBinding,
    ProviderBinding,
    SingletonBinding,
)
from bindwire.config import Config, ConfigChange, OverrideReport
from bindwire.discovery import find_session, find_session_access, get_session, weave
from bindwire.exceptions import (
    BindwireError,
    ConfigError,
    CyclicDependencyError,
    InvalidBindingError,
    MissingSessionError,
    UnresolvableTypeError,
)
from bindwire.holder import SessionHolder
from bindwire.introspection import ParameterInfo, SignatureIntrospector, TypeIntrospector
from bindwire.listeners import CallbackListener, SessionListener
from bindwire.registry import BindingBuilder, BindingRegistry
from bindwire.session import Session
from bindwire.type_key import Tag, TypeKey

__all__ = [
    "Binding",
    "BindingBuilder",
    "BindingRegistry",
    "BindwireError",
    "CallbackListener",
    "ClassBinding",
    "Config",
    "ConfigChange",
    "ConfigError",
    "CyclicDependencyError",
    "InstanceBinding",
    "InvalidBindingError",
    "MissingSessionError",
    "OverrideReport",
    "ParameterInfo",
    "ProviderBinding",
    "Session",
    "SessionHolder",
    "SessionListener",
    "SignatureIntrospector",
    "SingletonBinding",
    "Tag",
    "TypeIntrospector",
    "TypeKey",
    "UnresolvableTypeError",
    "find_session",
    "find_session_access",
    "get_session",
    "weave",
]
