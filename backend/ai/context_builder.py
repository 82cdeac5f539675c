from datetime import date

from db.models import DailyLog, WeeklyReflection
from services.daily_log_sections import completed_sections
from utils.datetime_utils import as_utc, to_local

INSIGHT_SYSTEM_PROMPT = (
    "You are a mental health assistant specializing in ADHD, anxiety, and depression. "
    "Provide empathetic, insightful analysis of daily logs."
)

WEEKLY_INSIGHT_SYSTEM_PROMPT = (
    "You are a mental health assistant specializing in ADHD, anxiety, and depression. "
    "Provide empathetic, insightful analysis of weekly reflections."
)

DAILY_INSIGHT_PROMPT = """Analyze the following daily log for {date} and provide personalized insights, patterns, and recommendations.
User timezone: {timezone}
Sections completed: {completed}

DAILY LOG DATA:

{data}

Based on this information, provide:
1. A summary of patterns and observations
2. Connections between sleep, medication, mood, and productivity
3. Personalized recommendations for improvement
4. Insights about emotional regulation and coping strategies
5. Observations about ADHD symptom management
6. A concise "Action Plan" with 2-3 specific, actionable suggestions

Format your response in clear sections with markdown. Keep it concise, empathetic, and actionable."""


def _text(value, fallback: str = "Not specified") -> str:
    if value is None:
        return fallback
    text = str(value).strip()
    return text or fallback


def _yes_no(value) -> str:
    return "Yes" if value else "No"


def _morning_lines(log: DailyLog) -> list[str]:
    return [
        "Morning Check-in:",
        f"- Sleep hours: {log.sleep_hours}",
        f"- Sleep quality (0-10): {log.sleep_quality}",
        f"- Dreams: {_text(log.dreams, 'None reported')}",
        f"- Morning mood (0-10): {log.morning_mood}",
        f"- Physical status: {_text(log.physical_status)}",
        f"- Breakfast: {_text(log.breakfast)}",
    ]


def _medication_lines(log: DailyLog) -> list[str]:
    lines = ["Medication:", f"- Medication taken: {_yes_no(log.medication_taken)}"]
    if log.medication_taken:
        taken_at = "Not specified"
        if log.medication_taken_at is not None:
            taken_at = to_local(as_utc(log.medication_taken_at), log.timezone).strftime("%H:%M")
        lines.extend([
            f"- Time taken: {taken_at}",
            f"- Dose: {log.medication_dose}mg",
            f"- Ate within hour: {_yes_no(log.ate_within_hour)}",
            f"- First hour feeling: {_text(log.first_hour_feeling)}",
        ])
    else:
        lines.append(f"- Reason for skipping: {_text(log.reason_for_skipping)}")
    return lines


def _midday_lines(log: DailyLog) -> list[str]:
    lines = [
        "Mid-day Check-in:",
        f"- Lunch: {_text(log.lunch)}",
        f"- Focus level (0-10): {log.focus_level}",
        f"- Energy level (0-10): {log.energy_level}",
        f"- Rumination level (0-10): {log.rumination_level}",
        f"- Current activity: {_text(log.current_activity)}",
        f"- Distractions: {_text(log.distractions, 'None reported')}",
    ]
    if log.had_emotional_event:
        lines.append(f"- Emotional event: {_text(log.emotional_event, 'Not described')}")
        lines.append(f"- Coping strategies: {_text(log.coping_strategies, 'None reported')}")
    else:
        lines.append("- No emotional events reported")
    return lines


def _afternoon_lines(log: DailyLog) -> list[str]:
    lines = [
        "Afternoon Check-in:",
        f"- Afternoon snack: {_text(log.afternoon_snack)}",
        f"- Experiencing medication crash: {_yes_no(log.is_crashing)}",
    ]
    if log.is_crashing:
        lines.append(f"- Crash symptoms: {_text(log.crash_symptoms)}")
    lines.extend([
        f"- Anxiety level (0-10): {_text(log.anxiety_level)}",
        f"- Current feeling: {_text(log.is_feeling)}",
        f"- Had triggering interaction: {_yes_no(log.had_triggering_interaction)}",
    ])
    if log.had_triggering_interaction:
        lines.append(f"- Interaction details: {_text(log.interaction_details)}")
    lines.extend([
        f"- Self-worth tied to performance (0-10): {_text(log.self_worth_tied_to_performance)}",
        f"- Overextended (0-10): {_text(log.overextended)}",
    ])
    return lines


def _evening_lines(log: DailyLog) -> list[str]:
    return [
        "Evening Reflection:",
        f"- Dinner: {_text(log.dinner)}",
        f"- Overall mood (0-10): {log.overall_mood}",
        f"- Sleepiness (0-10): {_text(log.sleepiness)}",
        f"- Medication effectiveness: {_text(log.medication_effectiveness)}",
        f"- Helpful factors: {_text(log.helpful_factors)}",
        f"- Distracting factors: {_text(log.distracting_factors)}",
        f"- Thought for tomorrow: {_text(log.thought_for_tomorrow)}",
        f"- Met dietary goals: {_yes_no(log.met_dietary_goals)}",
        f"- Met physical activity goals: {_yes_no(log.met_physical_activity_goals)}",
        f"- Excessively isolated: {_yes_no(log.excessively_isolated)}",
    ]


def _overall_lines(log: DailyLog) -> list[str]:
    return [
        "Overall Day:",
        f"- Day rating (0-10): {_text(log.day_rating)}",
        f"- Accomplishments: {_text(log.accomplishments, 'None reported')}",
        f"- Challenges: {_text(log.challenges, 'None reported')}",
        f"- Gratitude: {_text(log.gratitude)}",
        f"- Areas for improvement: {_text(log.improvements)}",
    ]


SECTION_FORMATTERS = (
    ("morning_completed", _morning_lines),
    ("medication_completed", _medication_lines),
    ("midday_completed", _midday_lines),
    ("afternoon_completed", _afternoon_lines),
    ("evening_completed", _evening_lines),
)


def format_daily_log(log: DailyLog) -> str:
    """Render the submitted sections of a log as a plain-text block.

    Sections that were never submitted are left out so the model does not read
    column defaults as real answers.
    """
    blocks = []
    for completed_attr, formatter in SECTION_FORMATTERS:
        if getattr(log, completed_attr):
            blocks.append("\n".join(formatter(log)))
    blocks.append("\n".join(_overall_lines(log)))
    return "\n\n".join(blocks)


def build_daily_insight_prompt(log: DailyLog) -> str:
    day = to_local(as_utc(log.date), log.timezone)
    done = completed_sections(log)
    return DAILY_INSIGHT_PROMPT.format(
        date=day.strftime("%A, %B %d, %Y"),
        timezone=log.timezone,
        completed=", ".join(done) if done else "none",
        data=format_daily_log(log),
    )


WEEKLY_INSIGHT_PROMPT = """Analyze the following weekly reflection for the week of {start} to {end} and provide personalized insights, patterns, and recommendations.

WEEKLY REFLECTION DATA:

{reflection}

{daily_logs}

Based on this information, provide:
1. A summary of the week's overall patterns and trends
2. Insights about physical health (sleep, exercise, diet) and their impact on mental well-being
3. Observations about work-life balance and stress management
4. Connections between activities, habits, and mood/energy levels
5. Personalized recommendations for the upcoming week
6. Recognition of achievements and progress
7. A concise "Action Plan" with 2-3 specific, actionable suggestions for the coming week

Format your response in clear sections with markdown. Keep it concise, empathetic, and actionable."""


def _rated(value, scale: int = 10) -> str:
    return f"{value}/{scale}" if value is not None else "Not specified"


def format_weekly_reflection(reflection: WeeklyReflection) -> str:
    return "\n".join([
        f"- Week rating (1-10): {_text(reflection.week_rating)}",
        f"- Mental state: {_text(reflection.mental_state)}",
        f"- Highlights: {_text(reflection.week_highlights, 'None reported')}",
        f"- Challenges: {_text(reflection.week_challenges, 'None reported')}",
        f"- Lessons learned: {_text(reflection.lessons_learned, 'None reported')}",
        f"- Next week focus: {_text(reflection.next_week_focus)}",
        f"- Questioned leaving job: {_yes_no(reflection.questioned_leaving_job)}",
        f"- Gym days this week: {reflection.gym_days_count or 0}/7",
        f"- Diet rating (1-10): {_text(reflection.diet_rating)}",
        f"- Memorable family activities: {_text(reflection.memorable_family_activities, 'None reported')}",
    ])


def _weekly_day_lines(log: DailyLog) -> list[str]:
    day = to_local(as_utc(log.date), log.timezone)
    return [
        f"- {day.strftime('%A, %b %d')}:",
        f"  * Sleep: {log.sleep_hours} hours, quality {_rated(log.sleep_quality)}",
        f"  * Medication taken: {_yes_no(log.medication_taken)}",
        f"  * Focus level: {_rated(log.focus_level)}",
        f"  * Energy level: {_rated(log.energy_level)}",
        f"  * Rumination level: {_rated(log.rumination_level)}",
        f"  * Overall mood: {_rated(log.overall_mood)}",
        f"  * Day rating: {_rated(log.day_rating)}",
        f"  * Met physical activity goals: {_yes_no(log.met_physical_activity_goals)}",
        f"  * Met dietary goals: {_yes_no(log.met_dietary_goals)}",
        f"  * Excessively isolated: {_yes_no(log.excessively_isolated)}",
    ]


def format_weekly_daily_logs(logs: list[DailyLog]) -> str:
    """One block per complete log of the week. Partial days are left out."""
    complete = [log for log in logs if log.is_complete]
    if not complete:
        return "No daily logs were completed during this week."
    days = "\n\n".join("\n".join(_weekly_day_lines(log)) for log in complete)
    return f"DAILY LOGS SUMMARY ({len(complete)} logs):\n\n{days}"


def build_weekly_insight_prompt(reflection: WeeklyReflection, logs: list[DailyLog]) -> str:
    start = date.fromisoformat(reflection.week_start)
    end = date.fromisoformat(reflection.week_end)
    return WEEKLY_INSIGHT_PROMPT.format(
        start=start.strftime("%A, %B %d, %Y"),
        end=end.strftime("%A, %B %d, %Y"),
        reflection=format_weekly_reflection(reflection),
        daily_logs=format_weekly_daily_logs(logs),
    )
