import pandas as pd
from sklearn.preprocessing import LabelEncoder

from hogwild_mf.data.interactions import UnweightedInteraction, interactions_from_frame
from hogwild_mf.errors import EmptyInput, InvalidConfiguration
from hogwild_mf.utils.logger import setup_logger

logger = setup_logger(__name__)


class InteractionPreprocessor:
    """Prepare raw implicit feedback for factorization.

    Raw ids may be arbitrary labels (strings, sparse integers); the output
    uses dense zero-based ids so they can index embedding tables directly.

    Parameters
    ----------
    frame : pd.DataFrame
        Must contain the `user_col` and `item_col` columns.
    user_col, item_col : str
        Names of the raw id columns.
    min_interactions : int, default 1
        Minimum #interactions both for a user and for an item.
    """

    def __init__(
        self,
        frame: pd.DataFrame,
        *,
        user_col: str = "user_id",
        item_col: str = "item_id",
        min_interactions: int = 1,
    ):
        if min_interactions < 1:
            raise InvalidConfiguration(f"min_interactions must be >= 1, got {min_interactions}.")

        self._raw = frame[[user_col, item_col]].copy()
        self.user_col = user_col
        self.item_col = item_col
        self.min_interactions = min_interactions

        # filled by .process()
        self.frame: pd.DataFrame | None = None
        self.user_encoder = LabelEncoder()
        self.item_encoder = LabelEncoder()

    def _iterative_filter(self, df: pd.DataFrame) -> pd.DataFrame:
        """Drop users/items with < min_interactions *recursively* until stable."""
        changed = True
        while changed:
            start_len = len(df)

            user_counts = df[self.user_col].value_counts()
            df = df[df[self.user_col].isin(user_counts[user_counts >= self.min_interactions].index)]

            item_counts = df[self.item_col].value_counts()
            df = df[df[self.item_col].isin(item_counts[item_counts >= self.min_interactions].index)]

            changed = len(df) != start_len
        return df.reset_index(drop=True)

    def process(self) -> pd.DataFrame:
        """Filter, de-duplicate and encode → DataFrame with columns [user, item]."""
        df = self._raw.drop_duplicates()
        df = self._iterative_filter(df)

        if df.empty:
            raise EmptyInput("No interactions left after filtering.")

        # encode AFTER filtering so that indices are dense
        out = pd.DataFrame({
            "user": self.user_encoder.fit_transform(df[self.user_col]),
            "item": self.item_encoder.fit_transform(df[self.item_col]),
        })

        logger.info(
            f"Kept {len(out):,} of {len(self._raw):,} interactions "
            f"| users: {self.num_users():,} | items: {self.num_items():,}"
        )

        self.frame = out
        return out

    def interactions(self) -> list[UnweightedInteraction]:
        if self.frame is None:
            self.process()
        return interactions_from_frame(self.frame)

    def num_users(self) -> int:
        return len(self.user_encoder.classes_)

    def num_items(self) -> int:
        return len(self.item_encoder.classes_)
