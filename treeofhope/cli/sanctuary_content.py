"""The 30 guided Sanctuary days: (title, body markdown, reflection prompt)."""

from __future__ import annotations

from typing import Dict, List, Tuple

SANCTUARY_CONTENT: List[Tuple[str, str, str]] = [
    (
        "Welcome",
        "This is your private space. For the next thirty days we walk beside you, one day at a time.\n\n"
        "Some days you will want to do the exercises, some days reading a few lines is plenty. Both count.",
        "What do you hope to find or feel in this Sanctuary?",
    ),
    (
        "Breath",
        "Your breath goes everywhere with you. Notice it without changing it.\n\n"
        "When things feel heavy, try a slow box breath: in for four, hold for four, out for four, hold for four.",
        "When do you notice your breathing changing? What does that tell you?",
    ),
    (
        "Gratitude",
        "Gratitude is noticing, not pretending. Look for three small things that are here alongside the hard ones.",
        "What are three small things you're grateful for today?",
    ),
    (
        "Your Team",
        "You are not meant to do this alone. Doctors, family, friends, neighbours, a pet on the sofa: they are all part of your team.",
        "Who are the people in your corner? Who could you reach out to this week?",
    ),
    (
        "One Step",
        "Pick the smallest possible step for today. Small steps add up, and going slowly is still going.",
        "What's one small, achievable thing you could do today for yourself?",
    ),
    (
        "Body Awareness",
        "Scan gently from head to toe. Notice tension, comfort, tiredness. Your body is talking to you.",
        "What does your body need from you today?",
    ),
    (
        "Rest",
        "Rest is not a reward you earn. It is part of healing.",
        "What does rest look like for you? What's one way you can rest today?",
    ),
    (
        "Medication Routine",
        "Routines carry you on the days memory and energy are low. Attach doses to things you already do.",
        "What could help you remember your routine? What would make it easier?",
    ),
    (
        "Nourishment",
        "Nourishment is food and water, and it is also music, light and people who feel safe.",
        "What does your body want to eat or drink today? What nourishes your soul?",
    ),
    (
        "Movement",
        "Movement can be tiny: stretching your fingers, rolling your shoulders, a short walk to the window.",
        "What kind of movement makes you feel good? What could you do today?",
    ),
    (
        "Mind",
        "Thoughts are visitors, not verdicts. You can notice one without believing every word of it.",
        "What's a difficult thought that visits you often? Can you observe it without believing it completely?",
    ),
    (
        "Worry Containment",
        "Give worries a time and a place. Write them down, close the notebook, come back at the time you chose.",
        "What's one worry you could contain right now? What would help you let it rest?",
    ),
    (
        "Hope Mapping",
        "Hope is built from small, real things. Map where yours comes from.",
        "What are your sources of hope? What reminds you that things might be okay?",
    ),
    (
        "Journal Practice",
        "Writing lets things out of your head and onto the page. Nobody else needs to read it.",
        "What's something you've been holding that you could write about?",
    ),
    (
        "Emotional Waves",
        "Feelings rise and fall like waves. You do not have to fight them to get through them.",
        "What emotional wave are you riding right now? How could you be gentler with yourself in it?",
    ),
    (
        "Reading Your Leaves",
        "Every leaf on your tree was written by someone thinking of you. Read a few slowly today.",
        "What message on your tree means the most to you? Why?",
    ),
    (
        "Accepting Help",
        "Letting people help is a gift to them as well as to you.",
        "What kind of help do you need right now? Who could you ask?",
    ),
    (
        "Communication",
        "Saying what you need, simply and honestly, makes it easier for others to show up well.",
        "What's one thing you need to tell someone? How could you say it?",
    ),
    (
        "Boundaries",
        "A boundary protects your energy. It can be kind and firm at the same time.",
        "What's a boundary you need to set? Who do you need to communicate it to?",
    ),
    (
        "Community",
        "Belonging can come from a group, a faith, an online forum or one good neighbour.",
        "Who or what makes you feel less alone? How could you connect more with community?",
    ),
    (
        "Values",
        "When energy is scarce, values help you choose where to spend it.",
        "What matters most to you right now? What are you willing to protect?",
    ),
    (
        "Legacy of Kindness",
        "Think about the kindness you have given. It is still out there, moving through other people.",
        "What kindness have you shown? Who have you touched with compassion?",
    ),
    (
        "What Matters Now",
        "This moment is the only one you need to handle. Look for something in it worth holding.",
        "What's one thing happening right now that you can appreciate?",
    ),
    (
        "Small Celebrations",
        "Celebrate the small wins. Getting through a tough appointment counts.",
        "What small victory did you accomplish today or recently? How can you celebrate it?",
    ),
    (
        "Looking Back",
        "Look back over the last few weeks. Notice what changed, even a little.",
        "What's shifted for you in these 25 days? What are you proud of?",
    ),
    (
        "Strength Review",
        "Strength is often quiet. It looks like showing up again tomorrow.",
        "What strength have you discovered in yourself? How have you shown up for yourself?",
    ),
    (
        "Gratitude Revisited",
        "Return to gratitude with everything you have learned since day three.",
        "What are you more deeply grateful for now? What matters that didn't matter before?",
    ),
    (
        "Letters Unwritten",
        "Some words need writing even if they are never sent.",
        "What letter do you need to write? Who or what is it to?",
    ),
    (
        "Tomorrow",
        "Choose the practices from this month that you want to keep.",
        "What do you want to carry forward from these 30 days? What practice will you keep?",
    ),
    (
        "Continuation",
        "The thirty days end here, and your care for yourself carries on. The Sanctuary stays open.",
        "What will you do tomorrow? How will you continue to care for yourself?",
    ),
]


def day_rows() -> List[Dict[str, object]]:
    """Rows ready for SanctuaryDay(**row), numbered from 1."""
    return [
        {"day_number": i, "title": title, "content_markdown": body, "reflection_prompt": prompt}
        for i, (title, body, prompt) in enumerate(SANCTUARY_CONTENT, start=1)
    ]
