"""
Statistics aggregation
Metrics derived from the progress ledger and exam attempt history
"""
import logging
from datetime import date, timedelta
from typing import Dict, List, Optional

from .constants import CATEGORIES, LEADERBOARD_TYPES, TIMEFRAMES, require_member
from .database import serialize_timestamp, utc_now
from .grading import round_half_up

logger = logging.getLogger(__name__)

CORRECT_SUM = 'SUM(CASE WHEN p.is_correct THEN 1 ELSE 0 END)'


def ratio_percentage(part, whole) -> int:
    """Rounded percentage with an empty denominator defined as 0"""
    if not whole:
        return 0
    return round_half_up((part or 0) / whole * 100)


def _rollup(row, key=None):
    total = row['total_attempts'] or 0
    correct = row['correct_answers'] or 0
    data = {
        'totalAttempts': total,
        'correctAnswers': correct,
        'percentage': ratio_percentage(correct, total),
    }
    if key:
        data = dict({key: row[key]}, **data)
    return data


def _day(value):
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


class StatisticsAggregator:
    def __init__(self, db_manager, practice_min_attempts=5, exam_min_attempts=1):
        self.db = db_manager
        self.min_attempts = {
            'practice': practice_min_attempts,
            'exam': exam_min_attempts,
        }

    def _cutoff(self, timeframe):
        require_member(timeframe, TIMEFRAMES, 'timeframe')
        days = TIMEFRAMES[timeframe or 'all']
        if days is None:
            return None
        return self.db.timestamp(utc_now() - timedelta(days=days))

    # Progress ledger

    def overall_accuracy(self, user_id, timeframe='all', category=None, question_type=None) -> Dict:
        """Accuracy over all of a user's progress entries"""
        params = {'user_id': user_id}
        join = ''
        conditions = ['p.user_id = :user_id']
        cutoff = self._cutoff(timeframe)
        if cutoff is not None:
            conditions.append('p.attempted_at >= :cutoff')
            params['cutoff'] = cutoff
        if category or question_type:
            # Filters need the question; entries for deleted questions drop out
            join = 'JOIN questions q ON p.question_id = q.id'
            if category:
                conditions.append('q.category = :category')
                params['category'] = category
            if question_type:
                conditions.append('q.question_type = :question_type')
                params['question_type'] = question_type

        rows = self.db.execute_query(f"""
            SELECT COUNT(p.id) AS total_attempts, {CORRECT_SUM} AS correct_answers
            FROM user_progress p
            {join}
            WHERE {' AND '.join(conditions)}
        """, params)
        return _rollup(rows[0])

    def _breakdown(self, user_id, column, key, timeframe):
        params = {'user_id': user_id}
        window = ''
        cutoff = self._cutoff(timeframe)
        if cutoff is not None:
            window = 'AND p.attempted_at >= :cutoff'
            params['cutoff'] = cutoff

        rows = self.db.execute_query(f"""
            SELECT q.{column} AS {key}, COUNT(p.id) AS total_attempts, {CORRECT_SUM} AS correct_answers
            FROM user_progress p
            JOIN questions q ON p.question_id = q.id
            WHERE p.user_id = :user_id {window}
            GROUP BY q.{column}
            ORDER BY q.{column}
        """, params)
        return [_rollup(row, key) for row in rows]

    def breakdown_by_category(self, user_id, timeframe='all') -> List[Dict]:
        return self._breakdown(user_id, 'category', 'category', timeframe)

    def breakdown_by_type(self, user_id, timeframe='all') -> List[Dict]:
        return self._breakdown(user_id, 'question_type', 'questionType', timeframe)

    def daily_progress(self, user_id, days=30) -> List[Dict]:
        """Attempts and accuracy per calendar day"""
        rows = self.db.execute_query(f"""
            SELECT DATE(p.attempted_at) AS day, COUNT(p.id) AS attempts, {CORRECT_SUM} AS correct
            FROM user_progress p
            WHERE p.user_id = :user_id AND p.attempted_at >= :cutoff
            GROUP BY DATE(p.attempted_at)
            ORDER BY DATE(p.attempted_at)
        """, {
            'user_id': user_id,
            'cutoff': self.db.timestamp(utc_now() - timedelta(days=days)),
        })
        return [
            {
                'date': _day(row['day']),
                'attempts': row['attempts'],
                'accuracy': ratio_percentage(row['correct'], row['attempts']),
            }
            for row in rows
        ]

    def recent_activity(self, user_id, limit=10) -> List[Dict]:
        rows = self.db.execute_query("""
            SELECT
                p.id, p.question_id, p.is_correct, p.attempted_at,
                q.question_text, q.category, q.question_type, q.difficulty
            FROM user_progress p
            LEFT JOIN questions q ON p.question_id = q.id
            WHERE p.user_id = :user_id
            ORDER BY p.attempted_at DESC, p.id DESC
            LIMIT :limit
        """, {'user_id': user_id, 'limit': limit})
        return [
            {
                'id': row['id'],
                'questionId': row['question_id'],
                'isCorrect': bool(row['is_correct']),
                'attemptedAt': serialize_timestamp(row['attempted_at']),
                'questionText': row['question_text'],
                'category': row['category'],
                'questionType': row['question_type'],
                'difficulty': row['difficulty'],
            }
            for row in rows
        ]

    # Exam attempts

    def exam_statistics(self, user_id, timeframe='all') -> Dict:
        """Count, average and best score over completed attempts"""
        params = {'user_id': user_id}
        window = ''
        cutoff = self._cutoff(timeframe)
        if cutoff is not None:
            window = 'AND completed_at >= :cutoff'
            params['cutoff'] = cutoff

        row = self.db.execute_query(f"""
            SELECT COUNT(id) AS total_exams, AVG(score) AS average_score, MAX(score) AS best_score
            FROM user_exam_attempts
            WHERE user_id = :user_id AND completed_at IS NOT NULL {window}
        """, params)[0]
        return {
            'totalExams': row['total_exams'] or 0,
            'averageScore': round_half_up(float(row['average_score'] or 0)),
            'bestScore': row['best_score'] or 0,
        }

    def recent_attempts(self, user_id, limit=5) -> List[Dict]:
        rows = self.db.execute_query("""
            SELECT a.id, a.exam_id, a.score, a.completed_at, e.title AS exam_title, e.category AS exam_category
            FROM user_exam_attempts a
            LEFT JOIN exams e ON a.exam_id = e.id
            WHERE a.user_id = :user_id AND a.completed_at IS NOT NULL
            ORDER BY a.completed_at DESC, a.id DESC
            LIMIT :limit
        """, {'user_id': user_id, 'limit': limit})
        return [
            {
                'id': row['id'],
                'examId': row['exam_id'],
                'examTitle': row['exam_title'],
                'examCategory': row['exam_category'],
                'score': row['score'],
                'completedAt': serialize_timestamp(row['completed_at']),
            }
            for row in rows
        ]

    # Summaries

    def progress_summary(self, user_id, category=None, question_type=None) -> Dict:
        return {
            'overall': self.overall_accuracy(user_id, category=category, question_type=question_type),
            'byCategory': self.breakdown_by_category(user_id),
            'byType': self.breakdown_by_type(user_id),
            'recentActivity': self.recent_activity(user_id),
        }

    def user_statistics(self, user_id, timeframe='all') -> Dict:
        return {
            'practice': self.overall_accuracy(user_id, timeframe),
            'exams': self.exam_statistics(user_id, timeframe),
            'byCategory': self.breakdown_by_category(user_id, timeframe),
            'byType': self.breakdown_by_type(user_id, timeframe),
            'recentExams': self.recent_attempts(user_id),
            'dailyProgress': self.daily_progress(user_id),
            'timeframe': timeframe,
        }

    def dashboard(self, user_id) -> Dict:
        """Personal overview shown after login"""
        practice = self.overall_accuracy(user_id)
        exams = self.exam_statistics(user_id)
        total_users = self.db.execute_query(
            "SELECT COUNT(*) AS count FROM users WHERE role != 'admin'"
        )[0]['count']
        return {
            'overview': {
                'totalPracticeAttempts': practice['totalAttempts'],
                'totalExamsCompleted': exams['totalExams'],
                'averageScore': practice['percentage'],
                'examAverageScore': exams['averageScore'],
                'bestScore': exams['bestScore'],
                'rank': self.user_rank('exam', user_id),
                'totalUsers': total_users,
            },
            'recentActivity': self.recent_activity(user_id, limit=5),
            'recentExams': self.recent_attempts(user_id, limit=3),
            'performance': {
                'weeklyProgress': self.daily_progress(user_id, days=7),
                'categoryBreakdown': self.breakdown_by_category(user_id),
            },
        }

    # Leaderboards

    def _ranking_rows(self, kind, category=None, limit=None):
        require_member(kind, LEADERBOARD_TYPES, 'leaderboard type')
        require_member(category, CATEGORIES, 'category')
        params = {'min_attempts': self.min_attempts[kind]}
        conditions = ["u.role != 'admin'"]
        window = ''
        if limit is not None:
            window = 'LIMIT :limit'
            params['limit'] = limit

        if kind == 'practice':
            join = ''
            if category:
                join = 'JOIN questions q ON p.question_id = q.id'
                conditions.append('q.category = :category')
                params['category'] = category
            query = f"""
                SELECT
                    u.id AS user_id, u.name AS user_name,
                    COUNT(p.id) AS total_attempts,
                    {CORRECT_SUM} AS correct_answers,
                    AVG(CASE WHEN p.is_correct THEN 100.0 ELSE 0 END) AS average_score
                FROM user_progress p
                JOIN users u ON p.user_id = u.id
                {join}
                WHERE {' AND '.join(conditions)}
                GROUP BY u.id, u.name
                HAVING COUNT(p.id) >= :min_attempts
                ORDER BY average_score DESC, u.id ASC
                {window}
            """
        else:
            join = ''
            conditions.append('a.completed_at IS NOT NULL')
            if category:
                join = 'JOIN exams e ON a.exam_id = e.id'
                conditions.append('e.category = :category')
                params['category'] = category
            query = f"""
                SELECT
                    u.id AS user_id, u.name AS user_name,
                    COUNT(a.id) AS total_attempts,
                    AVG(a.score) AS average_score,
                    MAX(a.score) AS best_score
                FROM user_exam_attempts a
                JOIN users u ON a.user_id = u.id
                {join}
                WHERE {' AND '.join(conditions)}
                GROUP BY u.id, u.name
                HAVING COUNT(a.id) >= :min_attempts
                ORDER BY average_score DESC, u.id ASC
                {window}
            """
        return self.db.execute_query(query, params)

    def leaderboard(self, kind='practice', category=None, limit=20) -> List[Dict]:
        """Ranked users; users under the attempt threshold are left out"""
        entries = []
        for rank, row in enumerate(self._ranking_rows(kind, category, limit), start=1):
            entry = {
                'rank': rank,
                'userId': row['user_id'],
                'userName': row['user_name'],
                'totalAttempts': row['total_attempts'],
                'averageScore': round(float(row['average_score'] or 0), 2),
            }
            if kind == 'practice':
                entry['correctAnswers'] = row['correct_answers'] or 0
                entry['accuracy'] = ratio_percentage(row['correct_answers'], row['total_attempts'])
            else:
                entry['bestScore'] = row['best_score'] or 0
            entries.append(entry)
        return entries

    def user_rank(self, kind, user_id, category=None, leaderboard=None) -> Optional[int]:
        """1-based rank of a user, or None when the user is not ranked"""
        for entry in leaderboard or []:
            if entry['userId'] == user_id:
                return entry['rank']
        # Outside the window (or no window): rank against everyone
        for rank, row in enumerate(self._ranking_rows(kind, category), start=1):
            if row['user_id'] == user_id:
                return rank
        return None

    def leaderboard_with_rank(self, user_id, kind='practice', category=None, limit=20) -> Dict:
        entries = self.leaderboard(kind, category, limit)
        return {
            'leaderboard': entries,
            'currentUserRank': self.user_rank(kind, user_id, category, leaderboard=entries),
            'type': kind,
            'category': category or 'all',
            'totalUsers': len(entries),
        }

    # Admin

    def admin_overview(self) -> Dict:
        def count(table):
            return self.db.execute_query(f'SELECT COUNT(*) AS count FROM {table}')[0]['count']

        recent_users = self.db.execute_query("""
            SELECT id, name, email, role, created_at FROM users
            ORDER BY created_at DESC, id DESC LIMIT 5
        """)
        category_stats = self.db.execute_query("""
            SELECT category, COUNT(*) AS count FROM questions GROUP BY category ORDER BY category
        """)
        difficulty_stats = self.db.execute_query("""
            SELECT difficulty, COUNT(*) AS count FROM questions GROUP BY difficulty ORDER BY difficulty
        """)
        return {
            'overview': {
                'totalUsers': count('users'),
                'totalQuestions': count('questions'),
                'totalExams': count('exams'),
                'totalAttempts': count('user_exam_attempts'),
            },
            'recentUsers': [
                {
                    'id': row['id'],
                    'name': row['name'],
                    'email': row['email'],
                    'role': row['role'],
                    'createdAt': serialize_timestamp(row['created_at']),
                }
                for row in recent_users
            ],
            'analytics': {
                'categoryStats': category_stats,
                'difficultyStats': difficulty_stats,
            },
        }
