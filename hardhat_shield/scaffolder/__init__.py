"""Project file generation -- hardhat config, token contract, automation scripts.

Quick usage::

    from hardhat_shield.scaffolder import ProjectFilesGenerator

    generator = ProjectFilesGenerator(config)
    await generator.write_hardhat_config()
    await generator.write_contract()
    await generator.write_scripts()
"""

from hardhat_shield.scaffolder.generator import SCRIPT_TEMPLATES, ProjectFilesGenerator
from hardhat_shield.scaffolder.templates import TemplateRenderer

__all__ = [
    "ProjectFilesGenerator",
    "SCRIPT_TEMPLATES",
    "TemplateRenderer",
]
