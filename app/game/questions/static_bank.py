from __future__ import annotations

import hashlib
from collections.abc import Collection

from app.game.questions.types import QuizQuestion
from app.game.questions.validation import question_fingerprint

_STATIC_POOL: tuple[QuizQuestion, ...] = (
    QuizQuestion(
        question_id="fb_civpro_001",
        subject="Civil Procedure",
        topic="Personal Jurisdiction",
        text=(
            "A Delaware corporation headquartered in Texas sells one machine to an Ohio buyer "
            "through an independent distributor. The machine injures the buyer in Ohio. Can an "
            "Ohio court exercise specific jurisdiction over the corporation?"
        ),
        options=(
            "Yes, because the injury occurred in Ohio",
            "Only if the corporation purposefully directed activity at Ohio",
            "Yes, because any sale creates minimum contacts",
            "No, because the corporation is not at home in Ohio",
        ),
        correct_option=1,
        explanation="Specific jurisdiction requires purposeful availment directed at the forum state.",
        difficulty=4,
    ),
    QuizQuestion(
        question_id="fb_civpro_002",
        subject="Civil Procedure",
        topic="Subject Matter Jurisdiction",
        text=(
            "A citizen of New York sues a citizen of New Jersey in federal court for $74,000 "
            "in contract damages. No federal question is presented. Should the court dismiss?"
        ),
        options=(
            "Yes, the amount in controversy must exceed $75,000",
            "No, complete diversity of citizenship exists",
            "No, contract claims arise under federal law",
            "Yes, neighbouring states cannot create diversity",
        ),
        correct_option=0,
        explanation="Diversity jurisdiction needs complete diversity and more than $75,000 in controversy.",
        difficulty=2,
    ),
    QuizQuestion(
        question_id="fb_conlaw_001",
        subject="Constitutional Law",
        topic="Free Speech",
        text=(
            "A city ordinance bans all signs criticizing the mayor from public sidewalks while "
            "allowing other political signs. Which standard will a court apply?"
        ),
        options=(
            "Rational basis review",
            "Intermediate scrutiny for time, place and manner rules",
            "Strict scrutiny as a content-based restriction",
            "No review because sidewalks are nonpublic forums",
        ),
        correct_option=2,
        explanation="Viewpoint and content-based restrictions in a public forum receive strict scrutiny.",
        difficulty=3,
    ),
    QuizQuestion(
        question_id="fb_conlaw_002",
        subject="Constitutional Law",
        topic="Commerce Clause",
        text=(
            "A state taxes milk produced out of state at a higher rate than milk produced "
            "in state, and Congress has not acted. How is the tax most likely analysed?"
        ),
        options=(
            "It is valid under the state's police power",
            "It violates the dormant Commerce Clause as discriminatory",
            "It is valid because milk is a local product",
            "It violates the Contracts Clause",
        ),
        correct_option=1,
        explanation="Facial discrimination against interstate commerce is virtually per se invalid.",
        difficulty=4,
    ),
    QuizQuestion(
        question_id="fb_contracts_001",
        subject="Contracts",
        topic="Formation",
        text=(
            "A seller emails an offer to sell a car for $9,000, open until Friday. On Wednesday "
            "the buyer replies: 'I accept if you include new tires.' What is the legal effect?"
        ),
        options=(
            "A contract forms including the new tires",
            "A contract forms without the tires",
            "The reply is a counteroffer that rejects the offer",
            "The reply is an acceptance subject to later agreement",
        ),
        correct_option=2,
        explanation="Under the mirror image rule a conditional acceptance is a counteroffer.",
        difficulty=2,
    ),
    QuizQuestion(
        question_id="fb_contracts_002",
        subject="Contracts",
        topic="Consideration",
        text=(
            "An uncle promises his niece $5,000 if she refrains from smoking until she turns 21. "
            "She complies, but the uncle refuses to pay. Is the promise enforceable?"
        ),
        options=(
            "No, because the niece received a health benefit",
            "No, because gratuitous promises are unenforceable",
            "Yes, only if the promise was in writing",
            "Yes, giving up a legal right is valid consideration",
        ),
        correct_option=3,
        explanation="Forbearance from a legal right is a bargained-for detriment and supports the promise.",
        difficulty=3,
    ),
    QuizQuestion(
        question_id="fb_crim_001",
        subject="Criminal Law",
        topic="Homicide",
        text=(
            "During a sudden bar fight a man is punched hard and, in a rage, immediately stabs "
            "his attacker, who dies. What is the most serious crime he can be convicted of?"
        ),
        options=(
            "First degree murder",
            "Voluntary manslaughter",
            "Involuntary manslaughter",
            "Felony murder",
        ),
        correct_option=1,
        explanation="A killing in the heat of passion on adequate provocation is voluntary manslaughter.",
        difficulty=3,
    ),
    QuizQuestion(
        question_id="fb_crim_002",
        subject="Criminal Law",
        topic="Inchoate Crimes",
        text=(
            "Two friends agree to rob a store. One buys masks, then both abandon the plan "
            "before reaching the store. Under the common law, what crime have they committed?"
        ),
        options=(
            "Attempted robbery",
            "No crime because they withdrew",
            "Conspiracy to commit robbery",
            "Solicitation only",
        ),
        correct_option=2,
        explanation="At common law conspiracy is complete on agreement and withdrawal is no defence.",
        difficulty=4,
    ),
    QuizQuestion(
        question_id="fb_evidence_001",
        subject="Evidence",
        topic="Hearsay",
        text=(
            "In a negligence trial the plaintiff offers a store clerk's statement, made moments "
            "after the fall, that 'the floor was just mopped and is still wet.' Is it admissible?"
        ),
        options=(
            "No, it is inadmissible hearsay",
            "Yes, as a present sense impression",
            "Yes, only as a prior inconsistent statement",
            "No, because the clerk is not a party",
        ),
        correct_option=1,
        explanation="A statement describing a condition made while or right after perceiving it is excepted.",
        difficulty=3,
    ),
    QuizQuestion(
        question_id="fb_evidence_002",
        subject="Evidence",
        topic="Character Evidence",
        text=(
            "In a battery prosecution the government offers evidence that the defendant "
            "started two unrelated fights last year to show he is a violent person. Ruling?"
        ),
        options=(
            "Admissible as proof of motive",
            "Admissible because battery is a crime of violence",
            "Inadmissible propensity evidence",
            "Admissible as habit evidence",
        ),
        correct_option=2,
        explanation="Other acts may not be used to prove character in order to show conforming conduct.",
        difficulty=2,
    ),
    QuizQuestion(
        question_id="fb_property_001",
        subject="Property",
        topic="Future Interests",
        text=(
            "An owner conveys land 'to my daughter for life, then to her children who reach 25.' "
            "The daughter has one child aged 10. What interest does the child hold?"
        ),
        options=(
            "A vested remainder subject to open",
            "A contingent remainder",
            "An executory interest",
            "A fee simple absolute",
        ),
        correct_option=1,
        explanation="The child's interest depends on a condition precedent of reaching 25.",
        difficulty=5,
    ),
    QuizQuestion(
        question_id="fb_property_002",
        subject="Property",
        topic="Recording Acts",
        text=(
            "An owner sells land to A, who does not record. The owner later sells the same land "
            "to B, who pays value without notice but also does not record. In a notice "
            "jurisdiction, who prevails?"
        ),
        options=(
            "A, because A's deed came first",
            "B, as a subsequent purchaser without notice",
            "Neither, because neither recorded",
            "The original owner retains title",
        ),
        correct_option=1,
        explanation="Notice statutes protect a later bona fide purchaser even without recording.",
        difficulty=4,
    ),
    QuizQuestion(
        question_id="fb_torts_001",
        subject="Torts",
        topic="Negligence",
        text=(
            "A shopper slips on a banana peel that had been on the grocery floor for three hours. "
            "Employees passed it several times. What is the store's likely liability?"
        ),
        options=(
            "Not liable because it did not drop the peel",
            "Liable under strict liability for premises",
            "Not liable because shoppers assume that risk",
            "Liable because it had constructive notice",
        ),
        correct_option=3,
        explanation="A hazard present long enough to be discovered gives the owner constructive notice.",
        difficulty=2,
    ),
    QuizQuestion(
        question_id="fb_torts_002",
        subject="Torts",
        topic="Intentional Torts",
        text=(
            "As a prank a student pulls a chair away as a classmate sits down. The classmate "
            "falls and is hurt. The student claims he meant no harm. Is he liable for battery?"
        ),
        options=(
            "Yes, he knew with substantial certainty contact would occur",
            "No, because he intended only a joke",
            "No, because he never touched the classmate",
            "Only if the classmate suffered serious injury",
        ),
        correct_option=0,
        explanation="Battery intent is satisfied by knowing contact is substantially certain to result.",
        difficulty=3,
    ),
)


def _stable_index(seed: str, size: int) -> int:
    digest = hashlib.sha256(seed.encode("utf-8")).digest()
    return int.from_bytes(digest[:8], "big") % size


def list_static_questions(subject: str | None = None) -> tuple[QuizQuestion, ...]:
    if subject is None:
        return _STATIC_POOL
    return tuple(question for question in _STATIC_POOL if question.subject == subject)


def select_fallback_question(
    subject: str,
    *,
    seen_fingerprints: Collection[str],
    selection_seed: str,
) -> QuizQuestion | None:
    # Same subject first, then any subject before giving up.
    for pool in (list_static_questions(subject), _STATIC_POOL):
        candidates = [
            question
            for question in pool
            if question_fingerprint(question.text) not in seen_fingerprints
        ]
        if candidates:
            return candidates[_stable_index(selection_seed, len(candidates))]
    return None
