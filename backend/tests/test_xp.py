import pytest

from app import db
from app.models import User
from app.services.xp import XpLevel, apply_elapsed_xp, award_xp, load_xp_table, parse_xp_table


TABLE = [
    XpLevel(level=1, next_required_xp=10, cumulative_xp=10),
    XpLevel(level=2, next_required_xp=20, cumulative_xp=30),
    XpLevel(level=3, next_required_xp=30, cumulative_xp=60),
]


def test_parse_skips_header_and_blank_lines():
    lines = [
        'level,required_xp,next_required_xp,cumulative_xp\n',
        '2,10,20,30\n',
        '\n',
        '1,0,10,10\n',
    ]
    assert parse_xp_table(lines) == TABLE[:2]


def test_parse_rejects_short_rows():
    with pytest.raises(ValueError):
        parse_xp_table(['level,a,b,c', '1,2'])


def test_bundled_table_is_ordered_and_cumulative():
    table = load_xp_table()
    assert table[0].level == 1
    assert [item.level for item in table] == list(range(1, len(table) + 1))
    running = 0
    for item in table:
        running += item.next_required_xp
        assert item.cumulative_xp == running


@pytest.mark.parametrize('xp, level, elapsed, expected', [
    (0, 1, 1, (1, 1)),
    (9, 1, 1, (10, 2)),
    (0, 1, 45, (45, 3)),
    (59, 3, 100, (159, 3)),
    (5, 1, -3, (5, 1)),
    (None, None, 2, (2, 1)),
])
def test_apply_elapsed_xp(xp, level, elapsed, expected):
    assert apply_elapsed_xp(xp, level, elapsed, TABLE) == expected


def test_award_xp_persists_and_clamps(flask_app):
    flask_app.config['XP_MAX_TICK_SEC'] = 30
    with flask_app.app_context():
        user = User.query.filter_by(username='alice').first()
        award_xp(user, 10)
        assert (user.xp, user.level) == (10, 1)

        award_xp(user, 500)
        db.session.expire_all()
        stored = User.query.filter_by(username='alice').first()
        assert stored.xp == 40
        assert stored.level == 1

        award_xp(stored, 20)
        assert (stored.xp, stored.level) == (60, 2)
