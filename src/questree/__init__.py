"""questree: Oblique decision trees that turn product catalogs into questionnaires."""

from loguru import logger

from questree.logging import PACKAGE_NAME, enable_logging
from questree.persistence import export_tree_document, restore_tree_document
from questree.tree.building import build_catalog_tree, build_tree
from questree.tree.models import BuildOptions, CatalogTree, EncodingOptions
from questree.tree.navigation import QuestionnaireSession

logger.disable(PACKAGE_NAME)  # noqa: RUF067 - Disable logging for the questree module by default

__all__ = [
    "BuildOptions",
    "CatalogTree",
    "EncodingOptions",
    "QuestionnaireSession",
    "build_catalog_tree",
    "build_tree",
    "enable_logging",
    "export_tree_document",
    "restore_tree_document",
]
