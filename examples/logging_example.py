"""Demonstrates how to enable and configure logging while building and walking a questionnaire.

questree logging is disabled by default. Users opt in by calling ``enable_logging()``,
which returns a ``LoggingHandle``. The handle can be used as a context manager
(``with enable_logging(): ...``) or disabled manually via ``handle.disable()``.
When the last active handle is disabled, questree logging is automatically turned off.

Key concepts shown here:

- ``level``: controls the minimum log level. The custom ``TREE_BUILD`` level
  (numeric value 25, between INFO and WARNING) surfaces finished builds and
  completed questionnaires and is the default. ``"DEBUG"`` adds column
  exclusions and every split decision.
- ``log_format``: ``"short"`` shows ``timestamp | level | function - message``;
  ``"full"`` adds the module and line number.
- Persistence: the built tree is exported to a JSON document and restored
  before the questionnaire runs, as a storage layer would do.
- Automatic cleanup: logging is re-disabled when the context manager exits.
"""

import json

from questree import (
    BuildOptions,
    QuestionnaireSession,
    build_catalog_tree,
    enable_logging,
    export_tree_document,
    restore_tree_document,
)

headers = ["sku", "price", "rating", "roast", "ship_days"]
rows = [
    ["C-01", "8.50", "4.1", "light", "2"],
    ["C-02", "9.00", "4.3", "light", "5"],
    ["C-03", "12.50", "4.6", "medium", "3"],
    ["C-04", "13.00", "4.4", "medium", "1"],
    ["C-05", "18.00", "4.8", "dark", "4"],
    ["C-06", "19.50", "4.9", "dark", "2"],
    ["C-07", "7.75", "3.9", "light", "6"],
    ["C-08", "21.00", "4.7", "dark", "3"],
    ["C-09", "15.25", "4.2", "medium", "7"],
    ["C-10", "11.00", "4.5", "dark", "2"],
]

# Enable logging at DEBUG level with full log format to see every split decision
with enable_logging(level="DEBUG", log_format="full"):
    tree = build_catalog_tree(headers, rows, options=BuildOptions(max_depth=4, min_leaf_size=2))
    print(f"\nBuilt tree: depth={tree.metrics.depth}, leaves={tree.metrics.leaf_count}\n")

    # Round trip through a JSON document
    document = json.dumps(export_tree_document(tree))
    restored = restore_tree_document(json.loads(document))

    # Walk the questionnaire, always choosing the first answer
    session = QuestionnaireSession(restored)
    question = session.current_question()
    while question is not None:
        print(question.text)
        print(f"  -> {question.choices[0].label}")
        question = session.answer("left")

    print("\nRecommended products:")
    for product in session.recommendations():
        print(f"  {product.id}: {dict(zip(restored.headers, product.original_row, strict=True))}")

# Logging automatically disabled here
