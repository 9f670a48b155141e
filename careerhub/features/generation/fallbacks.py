"""
careerhub/features/generation/fallbacks.py

Offline, deterministic substitutes for AI output.

Used when the provider fails or returns something the parser rejects. Each
template keys on a few coarse attributes of the input (education level,
interest keywords, difficulty, question type, subjects) and always satisfies
the same required-field contract as an AI result.
"""

from typing import Callable, Dict, List

from pydantic import BaseModel

from careerhub.models.generation import (
    AcademicPlanInput,
    AcademicPlanResult,
    Assignment,
    CareerSuggestion,
    CareerSuggestionsInput,
    CareerSuggestionsResult,
    FeatureKey,
    ImprovementArea,
    ImprovementStep,
    IndustryTrend,
    InterviewFeedbackInput,
    InterviewFeedbackResult,
    InterviewStrength,
    PracticeQuestion,
    PracticeQuestionsInput,
    PracticeQuestionsResult,
    Quiz,
    QuizQuestion,
    RecommendedResource,
    RoadmapInput,
    RoadmapPhase,
    RoadmapPlan,
    RoadmapResult,
    SalaryRange,
    ScheduleBlock,
    SkillRecommendation,
    StudyFocus,
)

HIGHER_EDUCATION_LEVELS = {"University Student", "University Graduate", "Certificate/Diploma"}


def _roadmap(data: RoadmapInput) -> RoadmapResult:
    higher_ed = data.education_level in HIGHER_EDUCATION_LEVELS
    return RoadmapResult(
        personality_summary=(
            "Based on your profile, you show strong potential in your chosen field. "
            "Your interests align well with current market opportunities."
        ),
        learning_style=(
            "Multimodal learner - You benefit from a mix of visual, hands-on, "
            "and reading-based learning approaches."
        ),
        strengths=[
            "Strong foundation in selected subjects",
            "Clear career direction",
            "Motivated to learn and grow",
        ],
        challenges=[
            "May need to improve time management skills",
            "Building professional network will be important",
        ],
        recommended_path=data.preferred_path,
        recommendation_reasoning=(
            f"Your preference for {data.preferred_path} aligns with your educational background "
            "and career goals. This path offers good opportunities in Tanzania's growing economy."
        ),
        roadmap=RoadmapPlan(
            phases=[
                RoadmapPhase(
                    timeline="0-6 months",
                    title="Foundation Building",
                    milestones=[
                        f"Research specific requirements for becoming a {data.dream_career}",
                        "Identify skill gaps and create learning plan",
                        "Join relevant online communities and forums",
                        "Start building portfolio or CV",
                    ],
                    estimated_cost_tzs=300000 if higher_ed else 500000,
                    resources=["Coursera Tanzania", "YouTube educational channels", "Local vocational training centers"],
                ),
                RoadmapPhase(
                    timeline="6-12 months",
                    title="Skill Development",
                    milestones=[
                        "Complete relevant certification or course",
                        "Build 2-3 practical projects",
                        "Network with professionals in your field",
                        "Apply for internships or entry positions",
                    ],
                    estimated_cost_tzs=500000 if higher_ed else 800000,
                    resources=["VETA training programs", "Online learning platforms", "Local industry meetups"],
                ),
                RoadmapPhase(
                    timeline="1-2 years",
                    title="Experience Gaining",
                    milestones=[
                        "Secure your first professional role",
                        "Continue learning advanced skills",
                        "Build professional network",
                        "Document your achievements",
                    ],
                    estimated_cost_tzs=200000,
                    resources=["Professional associations", "Industry conferences", "Mentorship programs"],
                ),
                RoadmapPhase(
                    timeline="2-5 years",
                    title="Career Growth",
                    milestones=[
                        "Advance to mid-level position or grow business",
                        "Become recognized in your field",
                        "Mentor others",
                        "Explore leadership opportunities",
                    ],
                    estimated_cost_tzs=0,
                    resources=["Leadership training", "Advanced certifications", "Business development resources"],
                ),
            ],
            total_estimated_duration="5 years",
            total_estimated_cost_tzs=1000000 if higher_ed else 1500000,
        ),
    )


_SOFTWARE_DEVELOPER = CareerSuggestion(
    title="Software Developer",
    match=85,
    salary_range_tzs=SalaryRange(entry=1500000, mid=3500000, senior=7000000),
    growth_rate="+22%",
    location="Dar es Salaam, Remote",
    description="Design and develop software applications using programming languages",
    skills=["JavaScript", "Python", "Problem Solving", "Teamwork"],
    education="Bachelor's in Computer Science or coding bootcamp",
    experience="Entry to Mid-level",
    demand="Very High",
    reasoning=(
        "Your interest in technology aligns with this high-demand career. "
        "Strong analytical skills are a great foundation."
    ),
)

_DATA_ANALYST = CareerSuggestion(
    title="Data Analyst",
    match=80,
    salary_range_tzs=SalaryRange(entry=1200000, mid=2800000, senior=5500000),
    growth_rate="+18%",
    location="Dar es Salaam, Arusha",
    description="Analyze data to help organizations make informed business decisions",
    skills=["Excel", "SQL", "Statistics", "Data Visualization"],
    education="Bachelor's in any field + data analysis certification",
    experience="Entry to Mid-level",
    demand="High",
    reasoning=(
        "Growing demand in Tanzania's business sector. "
        "Your analytical thinking would be valuable here."
    ),
)

_DIGITAL_MARKETER = CareerSuggestion(
    title="Digital Marketing Specialist",
    match=78,
    salary_range_tzs=SalaryRange(entry=1000000, mid=2500000, senior=5000000),
    growth_rate="+19%",
    location="Major cities, Remote",
    description="Develop and execute digital marketing campaigns across platforms",
    skills=["SEO", "Social Media", "Analytics", "Content Creation"],
    education="Bachelor's in Marketing or self-taught with certifications",
    experience="Entry to Mid-level",
    demand="High",
    reasoning=(
        "Fast-growing field in Tanzania as businesses go digital. "
        "Creative and business skills combine well here."
    ),
)

_PROJECT_COORDINATOR = CareerSuggestion(
    title="Project Coordinator",
    match=75,
    salary_range_tzs=SalaryRange(entry=1200000, mid=2800000, senior=5000000),
    growth_rate="+15%",
    location="Dar es Salaam, Regional offices",
    description="Manage and coordinate projects across different departments",
    skills=["Organization", "Communication", "Time Management", "Leadership"],
    education="Bachelor's degree in any field",
    experience="Entry to Mid-level",
    demand="Medium",
    reasoning=(
        "Versatile career that values organization and people skills. "
        "Good starting point for many industries."
    ),
)

_INDUSTRY_TRENDS = [
    IndustryTrend(
        industry="Technology & ICT",
        growth="+15%",
        hot_jobs="Software Developer, Data Analyst",
        relevance="Growing sector in Tanzania with increasing digital transformation",
    ),
    IndustryTrend(
        industry="Agriculture & Agribusiness",
        growth="+12%",
        hot_jobs="Agri-tech Specialist, Supply Chain Manager",
        relevance="Core sector in Tanzania with modernization opportunities",
    ),
    IndustryTrend(
        industry="Healthcare",
        growth="+10%",
        hot_jobs="Health Data Analyst, Telemedicine Coordinator",
        relevance="Expanding sector with increasing healthcare access initiatives",
    ),
    IndustryTrend(
        industry="Education & Training",
        growth="+8%",
        hot_jobs="EdTech Specialist, Curriculum Developer",
        relevance="Essential sector with ongoing education reforms",
    ),
]

_SKILLS = [
    SkillRecommendation(skill="Digital Literacy", demand=90, time_to_learn="2-4 months", priority="High",
                        gap_reason="Essential skill for modern workplace across all industries"),
    SkillRecommendation(skill="Communication Skills", demand=85, time_to_learn="3-6 months", priority="High",
                        gap_reason="Critical for career advancement and professional success"),
    SkillRecommendation(skill="Problem Solving", demand=88, time_to_learn="Ongoing", priority="High",
                        gap_reason="Highly valued skill that opens doors across industries"),
    SkillRecommendation(skill="Project Management", demand=75, time_to_learn="4-6 months", priority="Medium",
                        gap_reason="Valuable for leadership roles and career progression"),
]


def _mentions(values: List[str], *keywords: str) -> bool:
    return any(keyword in value for value in values for keyword in keywords)


def _career_suggestions(data: CareerSuggestionsInput) -> CareerSuggestionsResult:
    careers: List[CareerSuggestion] = []
    if _mentions(data.interests, "Technology", "ICT"):
        careers.extend([_SOFTWARE_DEVELOPER, _DATA_ANALYST])
    if _mentions(data.interests, "Business", "Finance"):
        careers.append(_DIGITAL_MARKETER)
    while len(careers) < 4:
        careers.append(_PROJECT_COORDINATOR)

    return CareerSuggestionsResult(
        alternative_careers=careers[:4],
        industry_trends=list(_INDUSTRY_TRENDS),
        skills_to_develop=list(_SKILLS),
        overall_analysis=(
            "You have a strong foundation with multiple career paths available. "
            "Focus on building digital skills and gaining practical experience. "
            "Your interests align well with growing sectors in Tanzania's economy."
        ),
    )


_READINESS_BY_SCORE = ((80, "ready"), (65, "developing"), (0, "needs_practice"))

_FOCUS_BY_DIFFICULTY = {
    "senior": "strategic thinking, leadership and measurable business impact",
    "intermediate": "technical depth, collaboration and growth trajectory",
    "entry": "foundational knowledge, learning ability and cultural fit",
}


def _interview_feedback(data: InterviewFeedbackInput) -> InterviewFeedbackResult:
    average = round(sum(answer.score for answer in data.responses) / len(data.responses))
    readiness = next(level for threshold, level in _READINESS_BY_SCORE if average >= threshold)
    focus = _FOCUS_BY_DIFFICULTY[data.difficulty]

    return InterviewFeedbackResult(
        overall_impression=(
            f"You completed {len(data.responses)} questions for the {data.position} role in "
            f"{data.industry} with an average score of {average}/100. Interviewers at this level "
            f"look for {focus}. Keep practising with structured answers to build consistency."
        ),
        readiness_level=readiness,
        top_strengths=[
            InterviewStrength(
                strength="Completed the full interview session",
                examples="Answered every question in the session",
                impact="Shows commitment and the ability to stay composed under pressure",
            ),
        ],
        areas_for_improvement=[
            ImprovementArea(
                area="Structured answers using the STAR method",
                current_level="Answers vary in structure",
                target_level="Consistent Situation, Task, Action, Result answers",
                priority="high",
            ),
            ImprovementArea(
                area="Specific, measurable outcomes",
                current_level="Outcomes are described in general terms",
                target_level="Results quantified with numbers or concrete impact",
                priority="medium",
            ),
        ],
        improvement_plan=[
            ImprovementStep(
                focus_area="STAR method practice",
                action_items=[
                    "Write out three STAR stories from school, work or volunteering",
                    "Rehearse each story aloud in under two minutes",
                ],
                timeframe="2 weeks",
                success_metrics="Every behavioral answer follows the STAR structure",
            ),
            ImprovementStep(
                focus_area=f"Role knowledge for {data.position}",
                action_items=[
                    f"Research common responsibilities of a {data.position} in {data.industry}",
                    "Prepare two questions to ask the interviewer",
                ],
                timeframe="1 week",
                success_metrics="Can explain how your experience maps to the role",
            ),
        ],
        recommended_resources=[
            RecommendedResource(
                resource="STAR method interview guides",
                purpose="Structure behavioral answers",
                priority="high",
            ),
            RecommendedResource(
                resource="Mock interviews with a mentor or peer",
                purpose="Build confidence and receive live feedback",
                priority="medium",
            ),
        ],
        practice_questions=[
            "Tell me about yourself.",
            f"Why do you want to work as a {data.position}?",
            "Describe a challenge you faced and how you overcame it.",
        ],
        next_steps=[
            "Review your lowest-scoring answers and rewrite them using STAR",
            "Schedule another practice session within a week",
        ],
    )


_GENERIC_QUESTIONS = {
    "multiple_choice": lambda subject, topic, n: PracticeQuestion(
        question=f"Question {n}: Which statement best describes a key idea in {topic}?",
        options=[
            f"A) The central concept of {topic} as presented in your {subject} notes",
            f"B) An idea unrelated to {topic}",
            f"C) A common misconception about {topic}",
            "D) None of the above",
        ],
        correct_answer=f"A) The central concept of {topic} as presented in your {subject} notes",
        explanation=f"Review the section on {topic} and restate its central concept in your own words.",
        source_reference=f"{subject}: {topic}",
    ),
    "short_answer": lambda subject, topic, n: PracticeQuestion(
        question=f"Question {n}: Explain the main idea of {topic} in one to three sentences.",
        correct_answer=f"A concise explanation of {topic} using the definitions from your {subject} material.",
        explanation="A good answer defines the concept and gives one example.",
        source_reference=f"{subject}: {topic}",
    ),
    "essay": lambda subject, topic, n: PracticeQuestion(
        question=f"Question {n}: Discuss the importance of {topic} in {subject}, using examples relevant to Tanzania.",
        correct_answer=(
            f"An essay that defines {topic}, explains why it matters in {subject}, "
            "gives at least two local examples and ends with a clear conclusion."
        ),
        explanation="Strong essays combine several concepts and support each point with evidence.",
        source_reference=f"{subject}: {topic}",
    ),
}


def _practice_questions(data: PracticeQuestionsInput) -> PracticeQuestionsResult:
    topics = data.topics or data.key_concepts or [data.subject]
    build = _GENERIC_QUESTIONS[data.question_type]
    return PracticeQuestionsResult(
        questions=[
            build(data.subject, topics[i % len(topics)], i + 1)
            for i in range(data.count)
        ]
    )


# Sunday=0; weekday evenings then Saturday morning
_SESSION_SLOTS = [
    (1, "16:00", "17:30"),
    (2, "16:00", "17:30"),
    (3, "16:00", "17:30"),
    (4, "16:00", "17:30"),
    (5, "16:00", "17:30"),
    (6, "09:00", "10:30"),
]


def _academic_plan(data: AcademicPlanInput) -> AcademicPlanResult:
    names = [s.name for s in data.subjects]
    assignments: List[Assignment] = []
    quizzes: List[Quiz] = []
    schedule: List[ScheduleBlock] = []

    for index, subject in enumerate(data.subjects):
        topic = subject.topics[0] if subject.topics else "core concepts"
        assignments.append(
            Assignment(
                title=f"{subject.name}: review {topic}",
                subject=subject.name,
                description=f"Summarise your notes on {topic} and complete five textbook exercises on it.",
                priority="high" if index == 0 else "medium",
                days_until_due=3 + 2 * index,
            )
        )
        quizzes.append(
            Quiz(
                title=f"{subject.name} check-in",
                subject=subject.name,
                description=f"Quick self-check on {topic}",
                time_limit_minutes=15,
                questions=[
                    QuizQuestion(
                        question=f"Which topic are you revising in {subject.name} this week?",
                        options=[topic, "None", "Not sure", "All topics"],
                        correct_answer=topic,
                        explanation="Focus on one topic at a time for steady progress.",
                    )
                ],
            )
        )
        for offset in range(2):
            day, start, end = _SESSION_SLOTS[(2 * index + offset) % len(_SESSION_SLOTS)]
            schedule.append(
                ScheduleBlock(
                    subject=subject.name,
                    title=f"Study {topic}",
                    day_of_week=day,
                    start_time=start,
                    end_time=end,
                )
            )

    return AcademicPlanResult(
        study_focus=StudyFocus(
            summary=(
                f"This week, build steady habits across {', '.join(names)}. "
                f"Start with {names[0]} and keep short, regular study sessions."
            ),
            weekly_tips=[
                "Study in focused 45-minute blocks with short breaks",
                "Review yesterday's notes before starting new material",
                "Practise past NECTA questions for each subject",
            ],
            priority_subject=f"{names[0]}, because it is first on your list of subjects needing help.",
        ),
        assignments=assignments,
        quizzes=quizzes,
        schedule=schedule,
    )


_FALLBACKS: Dict[FeatureKey, Callable[..., BaseModel]] = {
    FeatureKey.ROADMAP: _roadmap,
    FeatureKey.CAREER_SUGGESTIONS: _career_suggestions,
    FeatureKey.INTERVIEW_FEEDBACK: _interview_feedback,
    FeatureKey.PRACTICE_QUESTIONS: _practice_questions,
    FeatureKey.ACADEMIC_PLAN: _academic_plan,
}


def generate_fallback(feature_key: FeatureKey, payload) -> BaseModel:
    """Deterministic offline result for ``feature_key``; never touches the network."""
    return _FALLBACKS[FeatureKey.parse(feature_key)](payload)
