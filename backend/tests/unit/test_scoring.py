from app.domain.identity.models import AcademicProfile
from app.domain.matching import scoring

SOFTWARE = "Ingeniería en Desarrollo de Software"
SYSTEMS = "Ingeniería en Sistemas Informáticos"
TOURISM = "Licenciatura en Turismo"


def _profile(user_id="u1", *, career=SOFTWARE, campus="Suchiapa", semester=5, interests=("python", "music")):
    return AcademicProfile(user_id=user_id, career=career, campus=campus, semester=semester, interests=tuple(interests))


def test_identical_profiles_score_maximum():
    assert scoring.compatibility(_profile("a"), _profile("b")) == 100


def test_related_careers_score_half_of_career_weight():
    first = _profile("a", campus="Suchiapa", semester=5, interests=())
    second = _profile("b", career=SYSTEMS, campus="Tuxtla", semester=7, interests=())
    assert scoring.career_points(SOFTWARE, SYSTEMS) == 20
    # 20 (related career) + 0 (campus) + 0.2 * 80 (two semesters apart)
    assert scoring.compatibility(first, second) == 36


def test_unrelated_profiles_far_apart_score_zero():
    first = _profile("a", semester=1, interests=("chess",))
    second = _profile("b", career=TOURISM, campus="Tuxtla", semester=12, interests=("surf",))
    assert scoring.compatibility(first, second) == 0


def test_semester_points_decay_linearly():
    assert scoring.semester_points(4, 4) == 20
    assert scoring.semester_points(4, 5) == 18
    assert scoring.semester_points(1, 11) == 0


def test_shared_interests_are_case_insensitive_and_capped():
    tags = ("Python", "Music", "Chess", "Hiking", "Cinema", "Art")
    first = _profile("a", campus="Suchiapa", interests=tags)
    second = _profile("b", campus="Tuxtla", interests=[tag.lower() for tag in tags])
    assert scoring.interest_points(first, second) == 25
    # 40 career + 20 semester + 25 interests
    assert scoring.compatibility(first, second) == 85


def test_score_is_symmetric_and_bounded():
    first = _profile("a", career=SYSTEMS, semester=3, interests=("python",))
    second = _profile("b", campus="Tuxtla", semester=9, interests=("python", "art"))
    score = scoring.compatibility(first, second)
    assert score == scoring.compatibility(second, first)
    assert 0 <= score <= 100
