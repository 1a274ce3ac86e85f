"""
Database Module for the Philagora Editorial Pipeline

This module handles all database connections and operations for the pipeline.
It provides functions for connecting to the database, executing queries, and
managing philosophers, prompts, the generation log, approved content, news
sources and article candidates.

All statements use bound '?' parameters. Operations that write more than one
row run inside transaction() so they either fully apply or not at all.
"""

import json
import math
import re
import uuid
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Tuple

import pyodbc

from philagora.config import settings
from philagora.data.models import (
    AgoraResponse,
    AgoraThread,
    ArticleCandidate,
    ArticleScore,
    Contribution,
    Debate,
    DebatePost,
    FeedEntry,
    GenerationLogEntry,
    NewsSource,
    Philosopher,
    Post,
    SystemPrompt,
)
from philagora.utils.exceptions import (
    DatabaseConnectionError,
    InvalidRequestError,
    InvalidTransitionError,
    QueryError,
)
from philagora.utils.helpers import truncate_text
from philagora.utils.logger import get_logger

logger = get_logger(__name__)

# Widths of the bounded article_candidates columns in schema.sql
CANDIDATE_TITLE_WIDTH = 1000
CANDIDATE_URL_WIDTH = 780
CANDIDATE_PUB_DATE_WIDTH = 40
CANDIDATE_IMAGE_URL_WIDTH = 1000
CANDIDATE_CATEGORY_TAG_WIDTH = 200


def _rows_to_dicts(cursor) -> List[Dict[str, Any]]:
    if not cursor.description:
        return []
    columns = [column[0] for column in cursor.description]
    return [dict(zip(columns, row)) for row in cursor.fetchall()]


def _new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:16]}"


def _clamp(value: Optional[str], width: int) -> Optional[str]:
    if value is None:
        return None
    return truncate_text(value, width, add_ellipsis=False)


class DatabaseConnection:
    """Database connection manager for the Philagora pipeline."""

    def __init__(self, connection_string: Optional[str] = None):
        """Initialize the database connection."""
        self.conn = None
        self.connection_string = connection_string or settings.DB_CONNECTION_STRING
        pyodbc.pooling = False

    # =========================================================================
    # Connection handling
    # =========================================================================

    def connect(self) -> bool:
        """
        Establish a connection to the database.

        Returns:
            bool: True if connection was successful.

        Raises:
            DatabaseConnectionError: If no connection string is configured or
                the driver refuses the connection.
        """
        if not self.connection_string:
            raise DatabaseConnectionError("Database connection string is not configured")

        try:
            self.conn = pyodbc.connect(self.connection_string)
            self.conn.setdecoding(pyodbc.SQL_CHAR, encoding='utf-8')
            logger.info("Successfully connected to database")
            return True
        except pyodbc.Error as e:
            logger.error(f"Failed to connect to database: {e}")
            self.conn = None
            raise DatabaseConnectionError(f"Failed to connect to database: {e}") from e

    def close(self) -> None:
        """Close the database connection."""
        try:
            if self.conn:
                self.conn.close()
                self.conn = None
                logger.info("Database connection closed")
        except pyodbc.Error as e:
            logger.error(f"Error closing database connection: {e}")

    def _ensure_connection(self):
        if not self.conn:
            self.connect()
        return self.conn

    def _rollback(self) -> None:
        try:
            self.conn.rollback()
        except pyodbc.Error as e:
            logger.error(f"Rollback failed: {e}")

    def execute_query(self, query: str, params: Optional[tuple] = None) -> List[Dict[str, Any]]:
        """
        Execute a SQL query and return the results.

        Args:
            query: The SQL query to execute.
            params: Query parameters (optional).

        Returns:
            List[Dict]: Query results as a list of dictionaries. Statements
                that return no rows are committed and return an empty list.

        Raises:
            QueryError: If the statement fails. The transaction is rolled back.
        """
        self._ensure_connection()

        try:
            cursor = self.conn.cursor()
            if params:
                cursor.execute(query, params)
            else:
                cursor.execute(query)

            # Check if this is a SELECT query with results
            if cursor.description:
                return _rows_to_dicts(cursor)
            else:
                self.conn.commit()
                return []

        except pyodbc.Error as e:
            logger.error(f"Error executing query: {e}")
            self._rollback()
            raise QueryError(f"Error executing query: {e}") from e

    def execute_update(self, query: str, params: Optional[tuple] = None) -> int:
        """
        Execute a write statement, commit, and return the affected row count.

        Raises:
            QueryError: If the statement fails. The transaction is rolled back.
        """
        self._ensure_connection()

        try:
            cursor = self.conn.cursor()
            cursor.execute(query, params or ())
            affected = cursor.rowcount
            self.conn.commit()
            return affected
        except pyodbc.Error as e:
            logger.error(f"Error executing update: {e}")
            self._rollback()
            raise QueryError(f"Error executing update: {e}") from e

    @contextmanager
    def transaction(self) -> Iterator[Any]:
        """
        Run several statements as one unit of work.

        Yields a cursor. The transaction commits when the block exits normally
        and rolls back on any exception. Driver errors are re-raised as
        QueryError; other exceptions propagate unchanged.
        """
        self._ensure_connection()
        cursor = self.conn.cursor()
        try:
            yield cursor
            self.conn.commit()
        except Exception as e:
            logger.error(f"Transaction rolled back: {e}")
            self._rollback()
            if isinstance(e, pyodbc.Error):
                raise QueryError(f"Transaction failed: {e}") from e
            raise

    def init_schema(self, schema_file: Optional[str] = None) -> int:
        """
        Create the pipeline tables from schema.sql.

        The file is split on GO batch separators and each batch is run in
        turn. Every CREATE is guarded, so running it twice is harmless.

        Returns:
            int: Number of batches executed.
        """
        path = schema_file or settings.SCHEMA_FILE
        with open(path, encoding='utf-8') as f:
            script = f.read()

        batches = [b.strip() for b in re.split(r'^\s*GO\s*$', script, flags=re.MULTILINE | re.IGNORECASE)]
        batches = [b for b in batches if b]

        for batch in batches:
            self.execute_query(batch)

        logger.info(f"Applied {len(batches)} schema batches from {path}")
        return len(batches)

    # =========================================================================
    # Philosophers and prompts
    # =========================================================================

    def get_philosopher(self, philosopher_id: str) -> Optional[Philosopher]:
        rows = self.execute_query(
            """
            SELECT [id], [name], [tradition], [era], [core_principles]
            FROM [dbo].[philosophers]
            WHERE [id] = ?
            """,
            (philosopher_id,),
        )
        return Philosopher.from_row(rows[0]) if rows else None

    def get_philosopher_with_active_prompt(
        self, philosopher_id: str
    ) -> Tuple[Optional[Philosopher], Optional[SystemPrompt]]:
        """
        Read a philosopher and its active system prompt in a single query.

        Returns:
            Tuple of (philosopher, prompt). Either may be None.
        """
        rows = self.execute_query(
            """
            SELECT p.[id], p.[name], p.[tradition], p.[era], p.[core_principles],
                   sp.[id] AS prompt_id, sp.[prompt_version], sp.[system_prompt_text]
            FROM [dbo].[philosophers] p
            LEFT JOIN [dbo].[system_prompts] sp
                ON sp.[philosopher_id] = p.[id] AND sp.[is_active] = 1
            WHERE p.[id] = ?
            """,
            (philosopher_id,),
        )
        if not rows:
            return None, None

        row = rows[0]
        philosopher = Philosopher.from_row(row)
        if row.get("prompt_id") is None:
            return philosopher, None

        prompt = SystemPrompt(
            id=row["prompt_id"],
            philosopher_id=philosopher.id,
            prompt_version=row["prompt_version"],
            system_prompt_text=row["system_prompt_text"] or "",
            is_active=True,
        )
        return philosopher, prompt

    def get_active_prompt(self, philosopher_id: str) -> Optional[SystemPrompt]:
        rows = self.execute_query(
            """
            SELECT [id], [philosopher_id], [prompt_version], [system_prompt_text], [is_active]
            FROM [dbo].[system_prompts]
            WHERE [philosopher_id] = ? AND [is_active] = 1
            """,
            (philosopher_id,),
        )
        return SystemPrompt.from_row(rows[0]) if rows else None

    def list_prompts(self, philosopher_id: str) -> List[SystemPrompt]:
        rows = self.execute_query(
            """
            SELECT [id], [philosopher_id], [prompt_version], [system_prompt_text], [is_active]
            FROM [dbo].[system_prompts]
            WHERE [philosopher_id] = ?
            ORDER BY [prompt_version] DESC
            """,
            (philosopher_id,),
        )
        return [SystemPrompt.from_row(row) for row in rows]

    def create_prompt_version(self, philosopher_id: str, text: str) -> SystemPrompt:
        """
        Insert a new, inactive prompt version for a philosopher.

        The version number is max(existing) + 1, read under an update lock so
        two concurrent creators cannot pick the same number.
        """
        with self.transaction() as cursor:
            cursor.execute(
                """
                SELECT ISNULL(MAX([prompt_version]), 0)
                FROM [dbo].[system_prompts] WITH (UPDLOCK, HOLDLOCK)
                WHERE [philosopher_id] = ?
                """,
                (philosopher_id,),
            )
            next_version = int(cursor.fetchone()[0]) + 1

            cursor.execute(
                """
                INSERT INTO [dbo].[system_prompts]
                    ([philosopher_id], [prompt_version], [system_prompt_text], [is_active])
                OUTPUT INSERTED.[id]
                VALUES (?, ?, ?, 0)
                """,
                (philosopher_id, next_version, text),
            )
            prompt_id = int(cursor.fetchone()[0])

        logger.info(f"Created prompt version {next_version} for {philosopher_id} (id {prompt_id})")
        return SystemPrompt(
            id=prompt_id,
            philosopher_id=philosopher_id,
            prompt_version=next_version,
            system_prompt_text=text,
            is_active=False,
        )

    def set_active_prompt(self, prompt_id: int) -> SystemPrompt:
        """
        Make one prompt the active prompt of its philosopher.

        Every prompt of the philosopher is deactivated first, then the chosen
        one is activated, in one transaction.

        Raises:
            InvalidRequestError: If the prompt does not exist.
        """
        with self.transaction() as cursor:
            cursor.execute(
                """
                SELECT [id], [philosopher_id], [prompt_version], [system_prompt_text], [is_active]
                FROM [dbo].[system_prompts]
                WHERE [id] = ?
                """,
                (prompt_id,),
            )
            rows = _rows_to_dicts(cursor)
            if not rows:
                raise InvalidRequestError(f"System prompt {prompt_id} not found")
            prompt = SystemPrompt.from_row(rows[0])

            cursor.execute(
                "UPDATE [dbo].[system_prompts] SET [is_active] = 0 WHERE [philosopher_id] = ?",
                (prompt.philosopher_id,),
            )
            cursor.execute(
                "UPDATE [dbo].[system_prompts] SET [is_active] = 1 WHERE [id] = ?",
                (prompt_id,),
            )

        prompt.is_active = True
        logger.info(f"Activated prompt {prompt_id} (v{prompt.prompt_version}) for {prompt.philosopher_id}")
        return prompt

    # =========================================================================
    # Generation log
    # =========================================================================

    def insert_generation_log(self, entry: GenerationLogEntry) -> int:
        """Insert a generation log entry and return its id."""
        with self.transaction() as cursor:
            cursor.execute(
                """
                INSERT INTO [dbo].[generation_log]
                    ([philosopher_id], [content_type], [system_prompt_id],
                     [user_input], [raw_output], [status])
                OUTPUT INSERTED.[id]
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    entry.philosopher_id,
                    entry.content_type,
                    entry.system_prompt_id,
                    entry.user_input,
                    entry.raw_output,
                    entry.status,
                ),
            )
            log_id = int(cursor.fetchone()[0])

        entry.id = log_id
        return log_id

    def get_generation_log(self, log_id: int) -> Optional[GenerationLogEntry]:
        rows = self.execute_query(
            """
            SELECT [id], [philosopher_id], [content_type], [system_prompt_id],
                   [user_input], [raw_output], [status], [created_at]
            FROM [dbo].[generation_log]
            WHERE [id] = ?
            """,
            (log_id,),
        )
        return GenerationLogEntry.from_row(rows[0]) if rows else None

    def update_generation_log_status(self, log_id: int, current: str, target: str) -> bool:
        """Move a log entry from current to target. False if it was not in current."""
        affected = self.execute_update(
            "UPDATE [dbo].[generation_log] SET [status] = ? WHERE [id] = ? AND [status] = ?",
            (target, log_id, current),
        )
        return affected == 1

    @staticmethod
    def _move_log_in(cursor, log_id: int, current: str, target: str) -> None:
        """
        Conditionally move a log entry inside an open transaction.

        Raises:
            InvalidRequestError: If the entry does not exist.
            InvalidTransitionError: If the entry is no longer in current.
        """
        cursor.execute(
            "UPDATE [dbo].[generation_log] SET [status] = ? WHERE [id] = ? AND [status] = ?",
            (target, log_id, current),
        )
        if cursor.rowcount == 1:
            return
        cursor.execute("SELECT [status] FROM [dbo].[generation_log] WHERE [id] = ?", (log_id,))
        row = cursor.fetchone()
        if row is None:
            raise InvalidRequestError(f"Generation log entry {log_id} not found")
        raise InvalidTransitionError(f"generation log {log_id}", row[0], target)

    def _approve_log_in(self, cursor, log_id: int) -> None:
        self._move_log_in(cursor, log_id, "generated", "approved")

    # =========================================================================
    # Approved content
    # =========================================================================

    def approve_post(self, log_id: int, post: Post) -> Post:
        """Insert a post created from a log entry and mark the entry approved."""
        with self.transaction() as cursor:
            cursor.execute(
                """
                INSERT INTO [dbo].[posts]
                    ([id], [philosopher_id], [content], [thesis], [stance], [tag],
                     [citation_title], [citation_source], [citation_url], [reply_to],
                     [status], [generation_log_id])
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    post.id,
                    post.philosopher_id,
                    post.content,
                    post.thesis,
                    post.stance,
                    post.tag,
                    post.citation_title,
                    post.citation_source,
                    post.citation_url,
                    post.reply_to,
                    post.status,
                    log_id,
                ),
            )
            self._approve_log_in(cursor, log_id)

        logger.info(f"Approved post {post.id} from generation log {log_id}")
        return post

    def approve_debate_post(
        self,
        log_id: int,
        debate_id: str,
        philosopher_id: str,
        content: str,
        phase: str,
        target_philosopher_id: Optional[str] = None,
    ) -> DebatePost:
        """
        Insert an approved opening or rebuttal into a debate.

        sort_order is the number of posts already in the same phase. A
        rebuttal replies to the target philosopher's opening statement.

        Raises:
            InvalidRequestError: If the debate does not exist.
        """
        with self.transaction() as cursor:
            cursor.execute("SELECT [id] FROM [dbo].[debates] WHERE [id] = ?", (debate_id,))
            if not cursor.fetchone():
                raise InvalidRequestError(f"Debate {debate_id} not found")

            cursor.execute(
                "SELECT COUNT(*) FROM [dbo].[debate_posts] WHERE [debate_id] = ? AND [phase] = ?",
                (debate_id, phase),
            )
            sort_order = int(cursor.fetchone()[0])

            reply_to = None
            if phase == "rebuttal" and target_philosopher_id:
                cursor.execute(
                    """
                    SELECT TOP 1 [id] FROM [dbo].[debate_posts]
                    WHERE [debate_id] = ? AND [philosopher_id] = ? AND [phase] = 'opening'
                    """,
                    (debate_id, target_philosopher_id),
                )
                row = cursor.fetchone()
                reply_to = row[0] if row else None

            post_id = f"dp-{debate_id}-{philosopher_id}-{phase}-{uuid.uuid4().hex[:8]}"
            cursor.execute(
                """
                INSERT INTO [dbo].[debate_posts]
                    ([id], [debate_id], [philosopher_id], [content], [phase],
                     [reply_to], [sort_order], [generation_log_id])
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (post_id, debate_id, philosopher_id, content, phase, reply_to, sort_order, log_id),
            )
            self._approve_log_in(cursor, log_id)

        logger.info(f"Approved {phase} {post_id} for debate {debate_id}")
        return DebatePost(
            id=post_id,
            debate_id=debate_id,
            philosopher_id=philosopher_id,
            content=content,
            phase=phase,
            reply_to=reply_to,
            sort_order=sort_order,
        )

    def approve_agora_response(
        self, log_id: int, thread_id: str, philosopher_id: str, posts: List[str]
    ) -> AgoraResponse:
        """
        Insert an approved Agora response.

        Raises:
            InvalidRequestError: If the thread does not exist.
        """
        with self.transaction() as cursor:
            cursor.execute("SELECT [id] FROM [dbo].[agora_threads] WHERE [id] = ?", (thread_id,))
            if not cursor.fetchone():
                raise InvalidRequestError(f"Agora thread {thread_id} not found")

            cursor.execute(
                "SELECT COUNT(*) FROM [dbo].[agora_responses] WHERE [thread_id] = ?",
                (thread_id,),
            )
            sort_order = int(cursor.fetchone()[0])

            response_id = f"ar-{thread_id}-{philosopher_id}-{uuid.uuid4().hex[:8]}"
            cursor.execute(
                """
                INSERT INTO [dbo].[agora_responses]
                    ([id], [thread_id], [philosopher_id], [posts], [sort_order], [generation_log_id])
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (response_id, thread_id, philosopher_id, json.dumps(posts), sort_order, log_id),
            )
            self._approve_log_in(cursor, log_id)

        logger.info(f"Approved Agora response {response_id} for thread {thread_id}")
        return AgoraResponse(
            id=response_id,
            thread_id=thread_id,
            philosopher_id=philosopher_id,
            posts=list(posts),
            sort_order=sort_order,
        )

    def save_debate_synthesis(self, log_id: int, debate_id: str, data: Dict[str, Any]) -> None:
        """Store an approved debate synthesis on the debate and mark it complete."""
        summary = data.get("synthesisSummary") or {}
        with self.transaction() as cursor:
            cursor.execute(
                """
                UPDATE [dbo].[debates] SET
                    [synthesis_tensions] = ?,
                    [synthesis_agreements] = ?,
                    [synthesis_questions] = ?,
                    [synthesis_summary_agree] = ?,
                    [synthesis_summary_diverge] = ?,
                    [synthesis_summary_unresolved] = ?,
                    [synthesis_generation_log_id] = ?,
                    [status] = 'complete'
                WHERE [id] = ?
                """,
                (
                    json.dumps(data.get("tensions") or []),
                    json.dumps(data.get("agreements") or []),
                    json.dumps(data.get("questionsForReflection") or []),
                    summary.get("agree", ""),
                    summary.get("diverge", ""),
                    summary.get("unresolvedQuestion", ""),
                    log_id,
                    debate_id,
                ),
            )
            if cursor.rowcount != 1:
                raise InvalidRequestError(f"Debate {debate_id} not found")
            self._approve_log_in(cursor, log_id)

        logger.info(f"Saved synthesis for debate {debate_id}")

    def save_agora_synthesis(self, log_id: int, thread_id: str, data: Dict[str, Any]) -> None:
        """Upsert an approved Agora synthesis and mark the thread complete."""
        with self.transaction() as cursor:
            cursor.execute(
                "UPDATE [dbo].[agora_threads] SET [status] = 'complete' WHERE [id] = ?",
                (thread_id,),
            )
            if cursor.rowcount != 1:
                raise InvalidRequestError(f"Agora thread {thread_id} not found")

            cursor.execute(
                """
                MERGE [dbo].[agora_synthesis] AS target
                USING (SELECT ? AS [thread_id], ? AS [tensions], ? AS [agreements],
                              ? AS [practical_takeaways], ? AS [generation_log_id]) AS source
                ON target.[thread_id] = source.[thread_id]
                WHEN MATCHED THEN UPDATE SET
                    [tensions] = source.[tensions],
                    [agreements] = source.[agreements],
                    [practical_takeaways] = source.[practical_takeaways],
                    [generation_log_id] = source.[generation_log_id]
                WHEN NOT MATCHED THEN
                    INSERT ([thread_id], [tensions], [agreements], [practical_takeaways], [generation_log_id])
                    VALUES (source.[thread_id], source.[tensions], source.[agreements],
                            source.[practical_takeaways], source.[generation_log_id]);
                """,
                (
                    thread_id,
                    json.dumps(data.get("tensions") or []),
                    json.dumps(data.get("agreements") or []),
                    json.dumps(data.get("practicalTakeaways") or []),
                    log_id,
                ),
            )
            self._approve_log_in(cursor, log_id)

        logger.info(f"Saved synthesis for Agora thread {thread_id}")

    def publish_log_entry(self, log_id: int) -> None:
        """Move an approved log entry, and any post created from it, to published."""
        with self.transaction() as cursor:
            self._move_log_in(cursor, log_id, "approved", "published")
            cursor.execute(
                """
                UPDATE [dbo].[posts]
                SET [status] = 'published', [updated_at] = SYSUTCDATETIME()
                WHERE [generation_log_id] = ?
                """,
                (log_id,),
            )

        logger.info(f"Published generation log {log_id}")

    # =========================================================================
    # Debates and Agora threads
    # =========================================================================

    def get_debate(self, debate_id: str) -> Optional[Debate]:
        rows = self.execute_query(
            """
            SELECT [id], [title], [trigger_article_title], [trigger_article_source], [trigger_article_url]
            FROM [dbo].[debates]
            WHERE [id] = ?
            """,
            (debate_id,),
        )
        return Debate.from_row(rows[0]) if rows else None

    def get_debate_contributions(self, debate_id: str) -> List[Contribution]:
        rows = self.execute_query(
            """
            SELECT dp.[phase], dp.[content], dp.[philosopher_id], p.[name], p.[tradition],
                   target.[name] AS replying_to
            FROM [dbo].[debate_posts] dp
            JOIN [dbo].[philosophers] p ON dp.[philosopher_id] = p.[id]
            LEFT JOIN [dbo].[debate_posts] op ON dp.[reply_to] = op.[id]
            LEFT JOIN [dbo].[philosophers] target ON op.[philosopher_id] = target.[id]
            WHERE dp.[debate_id] = ?
            ORDER BY CASE dp.[phase] WHEN 'opening' THEN 0 ELSE 1 END, dp.[sort_order]
            """,
            (debate_id,),
        )
        return [
            Contribution(
                philosopher_name=row["name"],
                content=row["content"],
                tradition=row.get("tradition") or "",
                phase=row["phase"],
                replying_to=row.get("replying_to"),
                philosopher_id=row.get("philosopher_id"),
            )
            for row in rows
        ]

    def get_agora_thread(self, thread_id: str) -> Optional[AgoraThread]:
        rows = self.execute_query(
            "SELECT [id], [question], [asked_by] FROM [dbo].[agora_threads] WHERE [id] = ?",
            (thread_id,),
        )
        return AgoraThread.from_row(rows[0]) if rows else None

    def get_agora_contributions(self, thread_id: str) -> List[Contribution]:
        rows = self.execute_query(
            """
            SELECT ar.[posts], ar.[philosopher_id], p.[name], p.[tradition]
            FROM [dbo].[agora_responses] ar
            JOIN [dbo].[philosophers] p ON ar.[philosopher_id] = p.[id]
            WHERE ar.[thread_id] = ?
            ORDER BY ar.[sort_order]
            """,
            (thread_id,),
        )
        contributions = []
        for row in rows:
            try:
                posts = [str(p) for p in json.loads(row["posts"] or "[]")]
            except ValueError:
                posts = [row["posts"]]
            contributions.append(Contribution(
                philosopher_name=row["name"],
                content="\n\n".join(posts),
                tradition=row.get("tradition") or "",
                phase="response",
                philosopher_id=row.get("philosopher_id"),
                posts=posts,
            ))
        return contributions

    # =========================================================================
    # News sources and article candidates
    # =========================================================================

    def get_active_sources(self) -> List[NewsSource]:
        rows = self.execute_query(
            """
            SELECT [id], [name], [feed_url], [category], [is_active], [last_fetched_at]
            FROM [dbo].[news_sources]
            WHERE [is_active] = 1
            ORDER BY [name]
            """
        )
        return [NewsSource.from_row(row) for row in rows]

    def insert_candidate_if_new(self, source_id: str, entry: FeedEntry) -> bool:
        """
        Insert a new candidate unless (source_id, url) is already known.

        Feed values are clamped to their column widths; an unparsed pubDate
        string or an over-long title is stored shortened rather than refused.
        """
        url = _clamp(entry.link, CANDIDATE_URL_WIDTH)
        affected = self.execute_update(
            """
            INSERT INTO [dbo].[article_candidates]
                ([id], [source_id], [title], [url], [description], [pub_date], [image_url], [status])
            SELECT ?, ?, ?, ?, ?, ?, ?, 'new'
            WHERE NOT EXISTS (
                SELECT 1 FROM [dbo].[article_candidates] WITH (UPDLOCK, HOLDLOCK)
                WHERE [source_id] = ? AND [url] = ?
            )
            """,
            (
                _new_id("article"),
                source_id,
                _clamp(entry.title, CANDIDATE_TITLE_WIDTH),
                url,
                entry.description,
                _clamp(entry.published_at, CANDIDATE_PUB_DATE_WIDTH),
                _clamp(entry.image_url, CANDIDATE_IMAGE_URL_WIDTH),
                source_id,
                url,
            ),
        )
        return affected == 1

    def touch_source_fetched(self, source_id: str) -> None:
        self.execute_update(
            "UPDATE [dbo].[news_sources] SET [last_fetched_at] = SYSUTCDATETIME() WHERE [id] = ?",
            (source_id,),
        )

    def get_new_candidates(self, batch_size: int) -> List[ArticleCandidate]:
        """
        Select 'new' candidates for scoring, sampled evenly across sources.

        Each source contributes at most ceil(batch_size / sources) of its most
        recent articles so one prolific feed cannot fill the whole batch.
        """
        rows = self.execute_query(
            """
            SELECT COUNT(DISTINCT ac.[source_id]) AS source_count
            FROM [dbo].[article_candidates] ac
            JOIN [dbo].[news_sources] ns ON ac.[source_id] = ns.[id]
            WHERE ac.[status] = 'new' AND ns.[is_active] = 1
            """
        )
        source_count = rows[0]["source_count"] if rows else 0
        if not source_count:
            return []

        per_source = math.ceil(batch_size / source_count)
        rows = self.execute_query(
            """
            WITH ranked AS (
                SELECT ac.*, ns.[name] AS source_name, ns.[category] AS source_category,
                       ROW_NUMBER() OVER (
                           PARTITION BY ac.[source_id]
                           ORDER BY ac.[pub_date] DESC, ac.[fetched_at] DESC
                       ) AS rn
                FROM [dbo].[article_candidates] ac
                JOIN [dbo].[news_sources] ns ON ac.[source_id] = ns.[id]
                WHERE ac.[status] = 'new' AND ns.[is_active] = 1
            )
            SELECT TOP (?) * FROM ranked
            WHERE rn <= ?
            ORDER BY rn, source_category, source_name
            """,
            (batch_size, per_source),
        )
        return [ArticleCandidate.from_row(row) for row in rows]

    def mark_candidate_scored(self, candidate_id: str, score: ArticleScore) -> bool:
        affected = self.execute_update(
            """
            UPDATE [dbo].[article_candidates]
            SET [score] = ?,
                [score_reasoning] = ?,
                [suggested_philosophers] = ?,
                [suggested_stances] = ?,
                [primary_tensions] = ?,
                [philosophical_entry_point] = ?,
                [category_tag] = ?,
                [status] = 'scored',
                [scored_at] = SYSUTCDATETIME()
            WHERE [id] = ? AND [status] = 'new'
            """,
            (
                score.score,
                score.reasoning,
                json.dumps(score.suggested_philosophers),
                json.dumps(score.suggested_stances),
                json.dumps(score.primary_tensions),
                score.philosophical_entry_point,
                _clamp(score.category_tag, CANDIDATE_CATEGORY_TAG_WIDTH),
                candidate_id,
            ),
        )
        return affected == 1

    def update_candidate_status(self, candidate_id: str, current: str, target: str) -> bool:
        affected = self.execute_update(
            "UPDATE [dbo].[article_candidates] SET [status] = ? WHERE [id] = ? AND [status] = ?",
            (target, candidate_id, current),
        )
        return affected == 1

    def update_candidate_image(self, candidate_id: str, image_url: str) -> None:
        self.execute_update(
            "UPDATE [dbo].[article_candidates] SET [image_url] = ? WHERE [id] = ?",
            (_clamp(image_url, CANDIDATE_IMAGE_URL_WIDTH), candidate_id),
        )

    def get_candidate(self, candidate_id: str) -> Optional[ArticleCandidate]:
        rows = self.execute_query(
            """
            SELECT ac.*, ns.[name] AS source_name, ns.[category] AS source_category
            FROM [dbo].[article_candidates] ac
            JOIN [dbo].[news_sources] ns ON ac.[source_id] = ns.[id]
            WHERE ac.[id] = ?
            """,
            (candidate_id,),
        )
        return ArticleCandidate.from_row(rows[0]) if rows else None


# Create a default database instance for use throughout the application
db = DatabaseConnection()
