"""
Prompt templates for topic exploration, deeper exploration, validation and suggestions.

Every prompt is a pure function of its arguments and asks for JSON only.
"""

from typing import List

EXPLORATION_CONNECTIONS = 5

_EXPLORATION_SHAPE = """{
  "summary": "2-3 sentence engaging overview of the topic",
  "connections": [
    {
      "title": "Related concept name",
      "description": "How it relates and why it is fascinating",
      "relationship": "How it connects to the main topic",
      "confidence": 0.85
    }
  ],
  "keywords": ["key", "terms", "here"],
  "difficulty": "beginner|intermediate|advanced",
  "estimatedReadingTime": 5
}"""


def build_exploration_prompt(topic: str) -> str:
    """Prompt asking for a summary and exactly five connections for a topic."""
    return f"""You are an AI that helps curious learners explore topics through fascinating connections.

Topic to explore: "{topic}"

Create a curiosity trail that:
1. Gives an engaging summary of the topic
2. Finds exactly {EXPLORATION_CONNECTIONS} surprising but logical connections to other concepts
3. Spans different fields (science, history, art, technology, ...)
4. Makes the learner want to keep exploring

Respond with ONLY valid JSON in this exact format:
{_EXPLORATION_SHAPE}

Rules:
- "connections" must contain exactly {EXPLORATION_CONNECTIONS} items
- "confidence" is a number between 0.0 and 1.0
- "difficulty" is one of beginner, intermediate, advanced
- "estimatedReadingTime" is an integer number of minutes
- Do not add any text, markdown or code fences outside the JSON"""


def build_deeper_exploration_prompt(topic: str, already_explored: List[str]) -> str:
    """Prompt asking for new, more advanced connections that avoid known titles."""
    explored = '\n'.join(f'- {title}' for title in already_explored) or '- (none)'
    return f"""You are an AI that helps curious learners go deeper into a topic they already started exploring.

Topic: "{topic}"

Concepts the learner has ALREADY explored (do not repeat any of them):
{explored}

Find up to {EXPLORATION_CONNECTIONS} NEW connections that:
1. Are more advanced or specialised than the ones above
2. Favour cross-disciplinary links and underlying theory
3. Do not reuse any title from the list above

Respond with ONLY valid JSON in this exact format:
{_EXPLORATION_SHAPE}

Rules:
- "connections" must contain between 1 and {EXPLORATION_CONNECTIONS} items
- "confidence" is a number between 0.0 and 1.0
- "difficulty" is one of beginner, intermediate, advanced
- "estimatedReadingTime" is an integer number of minutes
- Do not add any text, markdown or code fences outside the JSON"""


def build_validation_prompt(topic_input: str) -> str:
    """Prompt asking whether an input is an explorable topic."""
    return f"""Decide whether the following user input is a topic that can be explored and learned about.

Input: "{topic_input}"

A valid topic is a subject, concept, field, event, person, place or idea. Greetings, gibberish,
instructions to the assistant and offensive content are not valid topics.

Respond with ONLY valid JSON in this exact format:
{{
  "isValid": true,
  "cleanedTopic": "The input rewritten as a concise, correctly spelled topic title",
  "reason": "Short explanation when the input is not valid",
  "suggestions": ["Up to 3 related valid topics"]
}}"""


def build_suggestion_prompt(explored_topics: List[str], count: int) -> str:
    """Prompt asking for new topics related to a learner's history."""
    if explored_topics:
        history = '\n'.join(f'- {topic}' for topic in explored_topics)
        context = f'The learner has already explored:\n{history}\n\nSuggest topics they have NOT explored yet that build on these interests.'
    else:
        context = 'The learner has not explored anything yet. Suggest varied, broadly appealing starting points.'

    return f"""You recommend fascinating topics to curious learners.

{context}

Respond with ONLY valid JSON in this exact format:
{{
  "suggestions": ["Topic one", "Topic two"]
}}

Return exactly {count} short topic titles (1-4 words each)."""
