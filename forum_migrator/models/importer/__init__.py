from .schema import MappingType, MigrationMapping

__all__ = ["MappingType", "MigrationMapping"]
