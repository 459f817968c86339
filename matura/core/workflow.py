from enum import Enum

class GenerationStage(str, Enum):
    VALIDATE_INPUT = "VALIDATE_INPUT"
    IDEA_ENHANCEMENT = "IDEA_ENHANCEMENT"
    SCHEMA_INFERENCE = "SCHEMA_INFERENCE"
    DESIGN_SYNTHESIS = "DESIGN_SYNTHESIS"
    CODE_GENERATION = "CODE_GENERATION"
    SELF_REPAIR = "SELF_REPAIR"
    QUALITY_SCORING = "QUALITY_SCORING"
    DONE = "DONE"
    FAILED = "FAILED"

class GenerationMode(str, Enum):
    QUICK = "quick"
    ADVANCED = "advanced"
    PREMIUM = "premium"
    TEMPLATE = "template"

PIPELINE = [
    GenerationStage.VALIDATE_INPUT,
    GenerationStage.IDEA_ENHANCEMENT,
    GenerationStage.SCHEMA_INFERENCE,
    GenerationStage.DESIGN_SYNTHESIS,
    GenerationStage.CODE_GENERATION,
    GenerationStage.SELF_REPAIR,
    GenerationStage.QUALITY_SCORING,
]
