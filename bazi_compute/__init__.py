"""BaZi (Four Pillars of Destiny) chart and luck-cycle computation."""
