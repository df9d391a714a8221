"""reelrelay - dynamic webhook registry and video generation job tracker."""
