from dataclasses import dataclass
from typing import Dict
from matura.core.workflow import GenerationStage
from matura.agents.base import BaseStageAgent
from matura.agents.impl_intake import ValidateInputAgent, IdeaEnhancementAgent
from matura.agents.impl_design import SchemaInferenceAgent, DesignSynthesisAgent
from matura.agents.impl_build import CodeGenerationAgent, SelfRepairAgent, QualityScoringAgent

@dataclass
class AgentRegistry:
    mapping: Dict[GenerationStage, BaseStageAgent]

    def get(self, stage: GenerationStage) -> BaseStageAgent:
        return self.mapping[stage]

    @staticmethod
    def default() -> "AgentRegistry":
        return AgentRegistry(mapping={
            GenerationStage.VALIDATE_INPUT: ValidateInputAgent(),
            GenerationStage.IDEA_ENHANCEMENT: IdeaEnhancementAgent(),
            GenerationStage.SCHEMA_INFERENCE: SchemaInferenceAgent(),
            GenerationStage.DESIGN_SYNTHESIS: DesignSynthesisAgent(),
            GenerationStage.CODE_GENERATION: CodeGenerationAgent(),
            GenerationStage.SELF_REPAIR: SelfRepairAgent(),
            GenerationStage.QUALITY_SCORING: QualityScoringAgent(),
        })
