"""Prompt templates for the five generation features.

Every builder is a pure function of its input model: no clock reads, no
randomness. The academic plan receives "today" as an input field.
"""

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from careerhub.models.generation import (
    AcademicPlanInput,
    CareerSuggestionsInput,
    FeatureKey,
    InterviewFeedbackInput,
    PracticeQuestionsInput,
    RoadmapInput,
)

JSON_ONLY = "Return ONLY valid JSON, no markdown formatting, code fences or extra text."


@dataclass(frozen=True)
class GenerationParams:
    temperature: float
    max_tokens: int
    json_mode: bool = True
    top_p: Optional[float] = None


GENERATION_PARAMS: Dict[FeatureKey, GenerationParams] = {
    FeatureKey.ROADMAP: GenerationParams(temperature=0.7, max_tokens=4000),
    FeatureKey.CAREER_SUGGESTIONS: GenerationParams(temperature=0.8, max_tokens=4000),
    FeatureKey.INTERVIEW_FEEDBACK: GenerationParams(temperature=0.6, max_tokens=3000, json_mode=False),
    FeatureKey.PRACTICE_QUESTIONS: GenerationParams(temperature=0.7, max_tokens=3000),
    FeatureKey.ACADEMIC_PLAN: GenerationParams(temperature=0.7, max_tokens=4096, top_p=0.9),
}

SYSTEM_PROMPTS: Dict[FeatureKey, str] = {
    FeatureKey.ROADMAP: (
        "You are an expert career counselor for Tanzanian youth. You provide detailed, "
        "actionable career roadmaps in JSON format. Always return valid JSON without "
        "markdown code blocks."
    ),
    FeatureKey.CAREER_SUGGESTIONS: (
        "You are an expert career counselor for Tanzanian youth. You provide realistic, "
        "actionable career suggestions in JSON format. Always return valid JSON without "
        "markdown code blocks."
    ),
    FeatureKey.INTERVIEW_FEEDBACK: (
        "You are a senior HR professional providing comprehensive interview feedback. "
        "Always respond with valid JSON only."
    ),
    FeatureKey.PRACTICE_QUESTIONS: (
        "You are an expert Tanzanian NECTA examination question creator.\n"
        "Your questions must:\n"
        "- Align with Tanzania's national curriculum\n"
        "- Follow NECTA examination format and standards\n"
        "- Be appropriate for the specified difficulty level\n"
        "- Include clear, unambiguous correct answers\n"
        "- Provide educational explanations\n"
        "- Reference specific parts of the study material\n\n"
        "ALWAYS respond in valid JSON format with the exact structure specified."
    ),
    FeatureKey.ACADEMIC_PLAN: (
        "You are an AI academic planner for CareerHub, an education platform in Tanzania. "
        "You generate personalized, actionable academic plans based on a student's profile. "
        "You MUST respond with ONLY valid JSON, no markdown, no code blocks, no extra text."
    ),
}


def _join(values: List[str], empty: str = "None specified") -> str:
    cleaned = [v for v in values if v]
    return ", ".join(cleaned) if cleaned else empty


def _roadmap(data: RoadmapInput) -> str:
    return f"""You are a career counselor AI specializing in the Tanzanian job market and education system. Analyze the following youth profile and create a detailed, actionable career roadmap.

**Profile:**
- Education Level: {data.education_level}
- Strongest Subjects: {_join(data.strongest_subjects)}
- Industries of Interest: {_join(data.industries_of_interest)}
- Dream Career: {data.dream_career}
- Preferred Path: {data.preferred_path}
- Focus Level: {data.focus_level}/10
- Time Management: {data.time_management}/10
- Support Preferences: {_join(data.study_support)}

**Required JSON Output Structure:**
{{
  "personality_summary": "A 2-3 sentence personality analysis based on subjects and interests",
  "learning_style": "Visual/Auditory/Kinesthetic/Reading-Writing learner with brief explanation",
  "strengths": ["List 3-5 key strengths based on profile"],
  "challenges": ["List 2-4 potential challenges they may face"],
  "recommended_path": "employment|self_employment|investor",
  "recommendation_reasoning": "2-3 sentences explaining why this path suits them best, considering Tanzania's job market",
  "roadmap": {{
    "phases": [
      {{
        "timeline": "0-6 months",
        "title": "Foundation Phase",
        "milestones": ["Specific actionable tasks"],
        "estimated_cost_tzs": 500000,
        "resources": ["Specific courses, platforms, or institutions in Tanzania"]
      }},
      {{"timeline": "6-12 months", "title": "Skill Building Phase", "milestones": ["..."], "estimated_cost_tzs": 1000000, "resources": ["..."]}},
      {{"timeline": "1-2 years", "title": "Experience & Growth Phase", "milestones": ["..."], "estimated_cost_tzs": 500000, "resources": ["..."]}},
      {{"timeline": "2-5 years", "title": "Career Establishment Phase", "milestones": ["..."], "estimated_cost_tzs": 0, "resources": ["..."]}}
    ],
    "total_estimated_duration": "5 years",
    "total_estimated_cost_tzs": 2000000
  }}
}}

**Important Guidelines:**
1. Base recommendations on Tanzania's job market realities
2. Include local institutions (e.g., VETA, universities, online platforms accessible in Tanzania)
3. Consider the person's education level and suggest realistic next steps
4. For costs, use realistic Tanzanian Shilling (TZS) amounts as integers
5. They chose the "{data.preferred_path}" path; explain if you agree or recommend differently
6. Make milestones SMART (Specific, Measurable, Achievable, Relevant, Time-bound)
7. Consider their focus and time management scores when planning timelines
8. {JSON_ONLY}"""


def _career_suggestions(data: CareerSuggestionsInput) -> str:
    return f"""You are a career counselor AI specializing in the Tanzanian job market. Analyze this youth's profile and suggest alternative career paths they might not have considered.

**User Profile:**
- Education Level: {data.education_level}
- Strongest Subjects: {_join(data.strongest_subjects)}
- Industries of Interest: {_join(data.interests)}
- Current Dream Career: {data.dream_career}
- Preferred Path: {data.preferred_path}
- AI Recommended Path: {data.ai_recommended_path or 'Not yet assessed'}

**Task:**
Generate 4 alternative career suggestions:
1. Two careers RELATED to their dream career (similar field/industry)
2. Two careers that LEVERAGE their strong subjects but in DIFFERENT fields

For each career, calculate a match percentage (0-100) weighted by subject alignment (40%), interest alignment (30%), path compatibility (20%) and market demand in Tanzania (10%).

**Required JSON Output:**
{{
  "alternative_careers": [
    {{
      "title": "Specific job title",
      "match": 85,
      "salary_range_tzs": {{"entry": 1500000, "mid": 3000000, "senior": 6000000}},
      "growth_rate": "+XX%",
      "location": "Specific cities or Remote",
      "description": "Clear 1-sentence description",
      "skills": ["Skill1", "Skill2", "Skill3", "Skill4"],
      "education": "Required education path",
      "experience": "Entry/Mid/Senior level",
      "demand": "Very High/High/Medium/Low",
      "reasoning": "Why this career matches their profile (2 sentences)"
    }}
  ],
  "industry_trends": [
    {{"industry": "Industry name", "growth": "+XX%", "hot_jobs": "Job1, Job2", "relevance": "Why this industry is relevant to the user (1 sentence)"}}
  ],
  "skills_to_develop": [
    {{"skill": "Specific skill name", "demand": 85, "time_to_learn": "X-Y months", "priority": "High/Medium/Low", "gap_reason": "Why they need this skill (1 sentence)"}}
  ],
  "overall_analysis": "2-3 sentences summarizing their career options and potential"
}}

**Important Guidelines:**
1. Use REALISTIC monthly Tanzanian Shilling (TZS) salaries: entry TZS 800,000 - 2,000,000; mid TZS 2,000,000 - 5,000,000; senior TZS 5,000,000 - 15,000,000 (adjust by field and demand)
2. Consider Tanzania's growing industries: Technology, Agriculture, Tourism, Healthcare, Education
3. Match percentages should be honest; not every career is 90%+
4. For industry trends, cover 2 industries from their interests and 2 trending industries they should consider
5. Be specific with skill names ("Python Programming", not "Programming")
6. Growth rates should reflect Tanzania and East Africa market realities
7. {JSON_ONLY}"""


_ASSESSMENT_FOCUS = {
    "senior": "Strategic thinking, leadership, and business impact",
    "intermediate": "Technical depth, collaboration, and growth trajectory",
    "entry": "Foundational knowledge, learning ability, and cultural fit",
}


def _interview_feedback(data: InterviewFeedbackInput) -> str:
    summary = "\n".join(
        f"**Question {i}:** {answer.question_text}\n"
        f"**Type:** {answer.question_type}\n"
        f"**Score:** {answer.score}/100\n"
        f"**Response:** {answer.response_text[:200]}..."
        for i, answer in enumerate(data.responses, start=1)
    )
    return f"""You are a senior HR professional and interview coach. Based on the complete interview session below, provide comprehensive feedback and an improvement plan.

**Interview Details:**
- Position: {data.position}
- Industry: {data.industry}
- Experience Level: {data.difficulty}
- Total Questions: {len(data.responses)}

**Responses Summary:**
{summary}

Provide a detailed assessment in the following JSON format:
{{
  "overall_impression": "2-3 paragraphs summarizing the candidate's overall performance, readiness, and potential",
  "readiness_level": "needs_practice|developing|ready|well_prepared",
  "top_strengths": [{{"strength": "specific strength", "examples": "which responses demonstrated this", "impact": "why this matters for the role"}}],
  "areas_for_improvement": [{{"area": "specific area needing work", "current_level": "where they are now", "target_level": "where they should be", "priority": "high|medium|low"}}],
  "improvement_plan": [{{"focus_area": "what to work on", "action_items": ["specific action"], "timeframe": "suggested timeframe", "success_metrics": "how to measure improvement"}}],
  "recommended_resources": [{{"resource": "book, course, or practice technique", "purpose": "what it will help with", "priority": "high|medium|low"}}],
  "practice_questions": ["question they should practice"],
  "next_steps": ["immediate next step"]
}}

**Assessment Criteria:**
- {_ASSESSMENT_FOCUS[data.difficulty]}
- Communication clarity and professionalism
- Use of frameworks (STAR method for behavioral questions)
- Specificity and measurable outcomes
- Relevance to the {data.position} role in {data.industry}

{JSON_ONLY}"""


_QUESTION_TYPE_INSTRUCTIONS = {
    "multiple_choice": (
        "Generate {count} multiple choice questions with exactly 4 options (A, B, C, D).\n"
        "- Each question should have ONE clearly correct answer\n"
        "- Distractors should be plausible but definitively incorrect\n"
        "- Options should be similar in length and complexity"
    ),
    "short_answer": (
        "Generate {count} short answer questions requiring 1-3 sentence responses.\n"
        "- Questions should test understanding, not just recall\n"
        "- Answers should be concise and specific\n"
        "- Focus on explaining concepts, not just defining them"
    ),
    "essay": (
        "Generate {count} essay questions requiring detailed, multi-paragraph responses.\n"
        "- Questions should be analytical and require synthesis of multiple concepts\n"
        "- Model answers should be comprehensive (3-5 sentences minimum)\n"
        "- Questions should allow demonstration of deep understanding"
    ),
}

_DIFFICULTY_GUIDANCE = {
    "easy": "EASY questions test basic recall and fundamental understanding in straightforward language.",
    "medium": "MEDIUM questions require application of concepts, simple calculations or comparisons, and logical reasoning.",
    "hard": "HARD questions require analysis and synthesis, complex problem-solving and critical thinking across concepts.",
}


def _practice_questions(data: PracticeQuestionsInput) -> str:
    options_line = '"options": ["A) ...", "B) ...", "C) ...", "D) ..."],\n      ' if data.question_type == "multiple_choice" else ""
    return f"""You are creating NECTA-style examination questions for {data.subject}.

MATERIAL CONTEXT:
Subject: {data.subject}
Topics covered: {_join(data.topics, 'various topics')}
Key concepts: {_join(data.key_concepts[:10], 'key concepts')}

MATERIAL CONTENT (excerpt):
{data.material_text[:6000]}

TASK:
{_QUESTION_TYPE_INSTRUCTIONS[data.question_type].format(count=data.count)}

DIFFICULTY LEVEL: {data.difficulty_level}
{_DIFFICULTY_GUIDANCE[data.difficulty_level]}

REQUIREMENTS:
1. Questions MUST be based on the material content provided
2. Each question must include a specific source_reference pointing to where in the material the answer can be found
3. Questions should align with Tanzania's NECTA examination standards
4. Use appropriate Tanzanian contexts and examples where relevant
5. Explanations should educate the student, not just state the answer

Respond with EXACTLY this JSON structure:
{{
  "questions": [
    {{
      "question": "...",
      {options_line}"correct_answer": "...",
      "explanation": "...",
      "source_reference": "..."
    }}
  ]
}}

Generate {data.count} high-quality questions. {JSON_ONLY}"""


def _academic_plan(data: AcademicPlanInput) -> str:
    subjects = ", ".join(
        f"{s.name} (topics: {', '.join(s.topics)})" if s.topics else s.name
        for s in data.subjects
    )
    struggles = f"Specific struggles: {data.specific_struggles}\n" if data.specific_struggles else ""
    # Python weekday(): Monday=0; the schedule uses Sunday=0
    day_number = (data.today.weekday() + 1) % 7
    return f"""Generate a personalized academic plan for this student:

Education Level: {data.education_level.replace('_', ' ')}
Subjects needing help: {subjects}
Types of help needed: {_join(data.help_types)}
{struggles}
Today is {data.today.strftime('%A, %B %d, %Y')}.
Today's day of week number is {day_number} (0=Sunday, 6=Saturday).

The JSON must have this exact structure:
{{
  "study_focus": {{
    "summary": "2-3 sentence personalized insight about their academic situation and what to focus on this week",
    "weekly_tips": ["tip1", "tip2", "tip3"],
    "priority_subject": "the subject they should focus most on and why (1 sentence)"
  }},
  "assignments": [
    {{"title": "specific assignment title", "subject": "one of their subjects exactly", "description": "what to do, with specific chapters/topics/exercises", "priority": "high|medium|low", "days_until_due": 7}}
  ],
  "quizzes": [
    {{"title": "quiz title", "subject": "one of their subjects exactly", "description": "what this quiz covers", "time_limit_minutes": 15,
      "questions": [{{"question": "the question text", "type": "multiple_choice", "options": ["A", "B", "C", "D"], "correct_answer": "the correct option text exactly", "explanation": "why this is correct"}}]}}
  ],
  "schedule": [
    {{"subject": "one of their subjects exactly", "title": "what to study in this session", "day_of_week": 1, "start_time": "HH:MM", "end_time": "HH:MM"}}
  ]
}}

RULES:
- Generate 5-8 assignments spread across ALL their subjects, with realistic deadlines (days_until_due 1-14)
- Generate 1 quiz per subject with 5 questions each (multiple_choice primarily)
- Generate a balanced weekly schedule covering all subjects (2-3 sessions per subject per week), between 06:00 and 20:00, sessions 1-2 hours each
- For Form 4 students use CSEE-level content; for Form 6 use ACSEE-level content; for University use university-level content
- Make assignments specific: reference actual topics, chapters, exercises
- If they mentioned specific struggles, address those in assignments and quizzes

{JSON_ONLY}"""


_BUILDERS: Dict[FeatureKey, Callable] = {
    FeatureKey.ROADMAP: _roadmap,
    FeatureKey.CAREER_SUGGESTIONS: _career_suggestions,
    FeatureKey.INTERVIEW_FEEDBACK: _interview_feedback,
    FeatureKey.PRACTICE_QUESTIONS: _practice_questions,
    FeatureKey.ACADEMIC_PLAN: _academic_plan,
}


def build_prompt(feature_key: FeatureKey, payload) -> str:
    """Render the user prompt for ``feature_key``. Same input, same text."""
    return _BUILDERS[FeatureKey.parse(feature_key)](payload)


def system_prompt(feature_key: FeatureKey) -> str:
    return SYSTEM_PROMPTS[FeatureKey.parse(feature_key)]
