from ibisdm.containers.record import Record, RecordSchema, Value, ValueKind
from ibisdm.containers.stack import Stack, StackSet
from ibisdm.containers.tset import TSet

__all__ = ["Record", "RecordSchema", "Stack", "StackSet", "TSet", "Value", "ValueKind"]
