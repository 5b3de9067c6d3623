"""Canonical option lists for questions imported without persisted options.

Several legacy templates (the BDI-II import and the intake questionnaire)
were loaded before options were stored per question.  Both the completion
form and the report view resolve those questions through this module so the
answer a client picked and the answer a clinician reads always agree.

Rules are matched in order against the lower-cased question text by
substring; the first rule with any matching keyword wins.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple


@dataclass(frozen=True)
class FallbackRule:
    keywords: Tuple[str, ...]
    options: Tuple[str, ...]

    def matches(self, text: str) -> bool:
        return any(keyword in text for keyword in self.keywords)


CHOICE_RULES: Tuple[FallbackRule, ...] = (
    FallbackRule(("session format",), ("In-Person", "Online", "Phone")),
    FallbackRule(
        ("sadness",),
        (
            "I do not feel sad.",
            "I feel sad much of the time.",
            "I am sad all the time.",
            "I am so sad or unhappy that I can't stand it.",
        ),
    ),
    FallbackRule(
        ("pessimism",),
        (
            "I am not discouraged about my future.",
            "I feel more discouraged about my future than I used to be.",
            "I do not expect things to work out for me.",
            "I feel my future is hopeless and will only get worse.",
        ),
    ),
    FallbackRule(
        ("past failure",),
        (
            "I do not feel like a failure.",
            "I have failed more than I should have.",
            "As I look back, I see a lot of failures.",
            "I feel I am a total failure as a person.",
        ),
    ),
    FallbackRule(
        ("loss of pleasure",),
        (
            "I get as much pleasure as I ever did from the things I enjoy.",
            "I don't enjoy things as much as I used to.",
            "I get very little pleasure from the things I used to enjoy.",
            "I can't get any pleasure from the things I used to enjoy.",
        ),
    ),
    FallbackRule(
        ("guilty feelings",),
        (
            "I don't feel particularly guilty.",
            "I feel guilty over many things I have done or should have done.",
            "I feel quite guilty most of the time.",
            "I feel guilty all of the time.",
        ),
    ),
    FallbackRule(
        ("punishment feelings",),
        (
            "I don't feel I am being punished.",
            "I feel I may be punished.",
            "I expect to be punished.",
            "I feel I am being punished.",
        ),
    ),
    FallbackRule(
        ("self-dislike",),
        (
            "I feel the same about myself as ever.",
            "I have lost confidence in myself.",
            "I am disappointed in myself.",
            "I dislike myself.",
        ),
    ),
    FallbackRule(
        ("self-criticalness",),
        (
            "I don't criticize or blame myself more than usual.",
            "I am more critical of myself than I used to be.",
            "I criticize myself for all of my faults.",
            "I blame myself for everything bad that happens.",
        ),
    ),
    FallbackRule(
        ("suicidal thoughts",),
        (
            "I don't have any thoughts of killing myself.",
            "I have thoughts of killing myself, but I would not carry them out.",
            "I would like to kill myself.",
            "I would kill myself if I had the chance.",
        ),
    ),
    FallbackRule(
        ("crying",),
        (
            "I don't cry anymore than I used to.",
            "I cry more than I used to.",
            "I cry over every little thing.",
            "I feel like crying, but I can't.",
        ),
    ),
    FallbackRule(
        ("agitation",),
        (
            "I am no more restless or wound up than usual.",
            "I feel more restless or wound up than usual.",
            "I am so restless or agitated that it's hard to stay still.",
            "I am so restless or agitated that I have to keep moving or doing something.",
        ),
    ),
    # Must precede the broader "loss of interest" rule.
    FallbackRule(
        ("loss of interest in sex",),
        (
            "I have not noticed any recent change in my interest in sex.",
            "I am less interested in sex than I used to be.",
            "I am much less interested in sex now.",
            "I have lost interest in sex completely.",
        ),
    ),
    FallbackRule(
        ("loss of interest",),
        (
            "I have not lost interest in other people or activities.",
            "I am less interested in other people or things than before.",
            "I have lost most of my interest in other people or things.",
            "It's hard to get interested in anything.",
        ),
    ),
    FallbackRule(
        ("indecisiveness",),
        (
            "I make decisions about as well as ever.",
            "I find it more difficult to make decisions than usual.",
            "I have much greater difficulty in making decisions than I used to.",
            "I have trouble making any decisions.",
        ),
    ),
    FallbackRule(
        ("worthlessness",),
        (
            "I do not feel I am worthless.",
            "I don't consider myself as worthwhile and useful as I used to.",
            "I feel more worthless as compared to other people.",
            "I feel utterly worthless.",
        ),
    ),
    FallbackRule(
        ("loss of energy",),
        (
            "I have as much energy as ever.",
            "I have less energy than I used to have.",
            "I don't have enough energy to do very much.",
            "I don't have enough energy to do anything.",
        ),
    ),
    FallbackRule(
        ("changes in sleeping",),
        (
            "I have not experienced any change in my sleeping pattern.",
            "I sleep somewhat more than usual / I sleep somewhat less than usual.",
            "I sleep a lot more than usual / I sleep a lot less than usual.",
            "I sleep most of the day / I wake up 1-2 hours early and can't get back to sleep.",
        ),
    ),
    FallbackRule(
        ("irritability",),
        (
            "I am no more irritable than usual.",
            "I am more irritable than usual.",
            "I am much more irritable than usual.",
            "I am irritable all the time.",
        ),
    ),
    FallbackRule(
        ("changes in appetite",),
        (
            "I have not experienced any change in my appetite.",
            "My appetite is somewhat less than usual / My appetite is somewhat greater than usual.",
            "My appetite is much less than before / My appetite is much greater than usual.",
            "I have no appetite at all / I crave food all the time.",
        ),
    ),
    FallbackRule(
        ("concentration",),
        (
            "I can concentrate as well as ever.",
            "I can't concentrate as well as usual.",
            "It's hard to keep my mind on anything for very long.",
            "I find I can't concentrate on anything.",
        ),
    ),
    FallbackRule(
        ("tiredness", "fatigue"),
        (
            "I am no more tired or fatigued than usual.",
            "I get more tired or fatigued more easily than usual.",
            "I am too tired or fatigued to do a lot of the things I used to do.",
            "I am too tired or fatigued to do most of the things I used to do.",
        ),
    ),
)

CHOICE_DEFAULT: Tuple[str, ...] = ("Yes", "No")

CHECKBOX_RULES: Tuple[FallbackRule, ...] = (
    FallbackRule(
        ("psychological tools", "which psychological"),
        (
            "Clinical Interview",
            "Questionnaires",
            "Standardized Tests",
            "Behavioral Observation",
            "Other",
        ),
    ),
    FallbackRule(
        ("physical concerns", "physical"),
        (
            "Headaches",
            "Sleep problems",
            "Fatigue",
            "Appetite changes",
            "Muscle tension",
            "Other physical symptoms",
        ),
    ),
    FallbackRule(
        ("emotional concerns", "emotional"),
        ("Anxiety", "Depression", "Anger", "Fear", "Sadness", "Feeling overwhelmed"),
    ),
    FallbackRule(
        ("social", "relational"),
        (
            "Isolation",
            "Relationship conflicts",
            "Communication difficulties",
            "Trust issues",
            "Cultural adjustment",
        ),
    ),
    FallbackRule(
        ("cognitive", "thinking"),
        (
            "Memory problems",
            "Concentration difficulties",
            "Confusion",
            "Racing thoughts",
            "Negative thinking",
        ),
    ),
    FallbackRule(
        ("medical conditions", "chronic"),
        (
            "Diabetes",
            "Heart disease",
            "High blood pressure",
            "Arthritis",
            "Other chronic condition",
        ),
    ),
    FallbackRule(
        ("trauma", "migration", "stressors"),
        (
            "Violence",
            "Loss of family/friends",
            "Economic hardship",
            "Discrimination",
            "Language barriers",
            "Cultural conflicts",
        ),
    ),
)

CHECKBOX_DEFAULT: Tuple[str, ...] = ("Yes", "No", "Not applicable")


def _match(rules: Tuple[FallbackRule, ...], text: str) -> Optional[FallbackRule]:
    for rule in rules:
        if rule.matches(text):
            return rule
    return None


def fallback_options(question_text: Optional[str], question_type: str) -> List[str]:
    """Return the fallback option list for a question without stored options."""

    text = (question_text or "").lower()
    if question_type == "checkbox":
        rule = _match(CHECKBOX_RULES, text)
        return list(rule.options if rule else CHECKBOX_DEFAULT)
    rule = _match(CHOICE_RULES, text)
    return list(rule.options if rule else CHOICE_DEFAULT)


__all__ = [
    "FallbackRule",
    "CHOICE_RULES",
    "CHOICE_DEFAULT",
    "CHECKBOX_RULES",
    "CHECKBOX_DEFAULT",
    "fallback_options",
]
