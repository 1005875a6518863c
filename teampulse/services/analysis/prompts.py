"""
Analysis Prompts
System prompts per variant and the shared user prompt template
"""
import json
from typing import Any, Dict, List

SERVICES_LINE = "Google Meet, Slack, Discord, Microsoft Teams, ChatWork and LINE WORKS"

COMPREHENSIVE_SYSTEM_PROMPT = f"""You are an analyst specializing in team communication across {SERVICES_LINE}.

Areas of expertise:
- Cross-platform productivity
- Organizational communication efficiency
- Early detection and prevention of burnout
- Team dynamics

Approach:
1. Objective, data-driven analysis
2. Practical recommendations a team lead can act on this quarter
3. Respect for privacy: talk about patterns, never about message content

Answer in clear, structured English with concrete numbers taken from the data.
Respond with a single JSON object and nothing else."""

PRODUCTIVITY_SYSTEM_PROMPT = f"""You are a productivity analyst for teams working across {SERVICES_LINE}.

Focus:
- Cost of switching between platforms
- Balance between synchronous (meetings) and asynchronous (messages) work
- Workflow bottlenecks and protected focus time

Respond with a single JSON object and nothing else."""

BURNOUT_SYSTEM_PROMPT = f"""You are a burnout-prevention specialist for teams working across {SERVICES_LINE}.

Focus:
- Workload spread over several platforms
- After-hours and weekend activity
- Changes in response rhythm and participation
- Early warning signs and preventive interventions

Respond with a single JSON object and nothing else."""

TEAM_DYNAMICS_SYSTEM_PROMPT = f"""You are a team dynamics analyst for teams working across {SERVICES_LINE}.

Focus:
- Collaboration patterns across platforms
- Cohesion, inclusiveness and distribution of influence
- Knowledge sharing and mentoring
- How information flows between members

Respond with a single JSON object and nothing else."""

COMMUNICATION_SYSTEM_PROMPT = f"""You are a communication analyst for teams working across {SERVICES_LINE}.

Focus:
- Channel health: threads, reactions, shared resources
- Response times and their consistency
- Which platforms carry which kind of conversation

Respond with a single JSON object and nothing else."""


def response_shape(summary_key: str) -> Dict[str, Any]:
    """The JSON object the model is asked to return."""
    return {
        summary_key: "Summary of the analysis (under 200 words)",
        "keyFindings": ["Finding 1", "Finding 2", "Finding 3"],
        "recommendations": ["Recommendation 1", "Recommendation 2", "Recommendation 3"],
        "riskFactors": [
            {
                "factor": "Risk name",
                "severity": "low|medium|high",
                "impact": "What happens if ignored",
                "mitigation": "How to reduce it",
            }
        ],
        "opportunities": [
            {
                "area": "Improvement area",
                "potential": "Expected benefit",
                "implementation": "How to get there",
            }
        ],
        "confidenceScore": 85,
        "analysisDepth": 80,
    }


def build_user_prompt(title: str, focus: List[str], summary_key: str, prepared: Dict[str, Any]) -> str:
    """Embed the prepared data and the expected answer shape into the user prompt."""
    sections = "\n".join(f"{i}. {item}" for i, item in enumerate(focus, start=1))
    return f"""# {title}

## Data
{json.dumps(prepared, indent=2, ensure_ascii=False, default=str)}

## What to analyze
{sections}

## Answer format
Return exactly this JSON structure (camelCase keys, scores 0-100):

{json.dumps(response_shape(summary_key), indent=2)}
"""
