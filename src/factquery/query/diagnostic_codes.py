from __future__ import annotations

CODE_CONTEXT_SHAPE_ERROR = "QUERY_CONTEXT_SHAPE_ERROR"
CODE_WHERE_SHAPE_ERROR = "QUERY_WHERE_SHAPE_ERROR"
CODE_BINDING_LIST_ERROR = "QUERY_BINDING_LIST_ERROR"
CODE_ORPHAN_SYMBOLS = "QUERY_ORPHAN_SYMBOLS"
CODE_OVERUSED_WILDCARDS = "QUERY_OVERUSED_WILDCARDS"
CODE_UNKNOWN_ATTRIBUTES = "QUERY_UNKNOWN_ATTRIBUTES"
CODE_IGNORED_CONTEXT_KEYS = "QUERY_IGNORED_CONTEXT_KEYS"
CODE_UNLABELED_PROJECTION = "QUERY_UNLABELED_PROJECTION"
