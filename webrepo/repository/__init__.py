"""Repository Layer for webrepo.

This module provides the repository facade over pluggable webservices:
- Endpoint facade with finders, get/save/delete lifecycle and events
- Lazy, fluent queries frozen into backend agnostic request descriptors
- Condition trees parsed from condition maps
- Schema, dirty-tracked records and the marshaller building them
"""

from ._base import (
    Action,
    InvalidPrimaryKey,
    MagicFinderAmbiguous,
    MagicFinderArgumentMismatch,
    MagicFinderError,
    MissingResourceClass,
    MissingWebservice,
    PaginationInfo,
    PersistenceFailed,
    QueryError,
    RecordNotFound,
    RepositoryError,
    RuleMode,
    SchemaError,
    SortCriteria,
    SortDirection,
    TransportError,
    UnknownFinder,
)
from .connection import Connection
from .descriptor import ReadResult, RequestDescriptor
from .endpoint import Endpoint, EndpointConfig
from .finders import DynamicFinder, FinderRegistry, parse_dynamic_finder
from .marshaller import Marshaller
from .query import Query
from .record import Record
from .registry import EndpointRegistry, get_endpoint_registry
from .result import ResultSet
from .rules import RulesChecker
from .schema import Column, Schema
from .specifications import (
    AndSpecification,
    FieldSpecification,
    NotSpecification,
    OrSpecification,
    Specification,
    parse_conditions,
)

__all__ = [
    "Action",
    "AndSpecification",
    "Column",
    "Connection",
    "DynamicFinder",
    "Endpoint",
    "EndpointConfig",
    "EndpointRegistry",
    "FieldSpecification",
    "FinderRegistry",
    "InvalidPrimaryKey",
    "MagicFinderAmbiguous",
    "MagicFinderArgumentMismatch",
    "MagicFinderError",
    "Marshaller",
    "MissingResourceClass",
    "MissingWebservice",
    "NotSpecification",
    "OrSpecification",
    "PaginationInfo",
    "PersistenceFailed",
    "Query",
    "QueryError",
    "ReadResult",
    "Record",
    "RecordNotFound",
    "RepositoryError",
    "RequestDescriptor",
    "ResultSet",
    "RuleMode",
    "RulesChecker",
    "Schema",
    "SchemaError",
    "SortCriteria",
    "SortDirection",
    "Specification",
    "TransportError",
    "UnknownFinder",
    "get_endpoint_registry",
    "parse_conditions",
    "parse_dynamic_finder",
]
