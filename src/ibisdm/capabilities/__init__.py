from ibisdm.capabilities.database import Database, TableDatabase
from ibisdm.capabilities.grammar import FormalGrammar, Grammar, join_phrases

__all__ = ["Database", "TableDatabase", "FormalGrammar", "Grammar", "join_phrases"]
